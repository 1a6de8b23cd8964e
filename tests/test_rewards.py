"""
Reward offering tests.

Run with:
    pytest tests/test_rewards.py -v
"""

import asyncio

import pytest

from fspsim.config import TimingConfig
from fspsim.constants import DEFAULT_OFFERS
from fspsim.drivers.rewards import RewardOfferingScheduler
from fspsim.exceptions import AuthorityError
from fspsim.protocol.events import EventKind
from fspsim.protocol.offers import offers_from_dicts
from fspsim.scheduler import VirtualClock

from conftest import T0


@pytest.fixture
def offers():
    return offers_from_dicts(DEFAULT_OFFERS)


@pytest.fixture
def rewards(make_driver, offers):
    def factory(**overrides):
        overrides.setdefault("offers", offers)
        return make_driver(RewardOfferingScheduler, **overrides)
    return factory


class TestOffer:

    @pytest.mark.asyncio
    async def test_waits_for_reward_epoch_start(self, rewards, state, authority, clock, offers):
        task = asyncio.create_task(rewards().offer())
        await clock.advance(3)
        assert not task.done()
        authority.offer_rewards.assert_not_awaited()

        state.ledger.record_event(0, EventKind.REWARD_EPOCH_STARTED)
        await clock.advance(1)
        assert await task is True
        authority.offer_rewards.assert_awaited_once_with(1, offers)

    @pytest.mark.asyncio
    async def test_explicit_epoch_skips_wait(self, rewards, authority, offers):
        assert await rewards().offer(5) is True
        authority.offer_rewards.assert_awaited_once_with(5, offers)

    @pytest.mark.asyncio
    async def test_failure_reported(self, rewards, authority):
        authority.offer_rewards.side_effect = AuthorityError("epoch already offered")
        assert await rewards().offer(1) is False

    @pytest.mark.asyncio
    async def test_no_offers(self, rewards, authority):
        assert await rewards(offers=[]).offer(1) is False
        authority.offer_rewards.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timeout(self, rewards, authority, clock):
        driver = rewards(timing=TimingConfig(wait_timeout=3))
        task = asyncio.create_task(driver.offer())
        await clock.advance(5)
        assert await task is False
        authority.offer_rewards.assert_not_awaited()


class TestArming:

    def test_first_fire_after_next_epoch_start(self, rewards):
        driver = rewards(timing=TimingConfig(reward_offer_delay=1))
        assert driver.first_fire_at() == T0 + 101

    def test_first_fire_before_first_reward_epoch(self, rewards, late_epochs):
        driver = rewards(epochs=late_epochs, clock=VirtualClock(T0 + 30), timing=TimingConfig(reward_offer_delay=1))
        assert driver.first_fire_at() == late_epochs.first_reward_epoch_start_ts + 1 == T0 + 201

    @pytest.mark.asyncio
    async def test_rearms_each_epoch(self, rewards, state, authority, clock):
        state.ledger.record_event(0, EventKind.REWARD_EPOCH_STARTED)
        driver = rewards(timing=TimingConfig(reward_offer_delay=1))

        await driver._fire()
        assert [entry.fire_at for entry in driver.scheduler.pending] == [T0 + 101]
        authority.offer_rewards.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_offer_still_rearms(self, rewards, state, authority):
        authority.offer_rewards.side_effect = AuthorityError("insufficient funds")
        state.ledger.record_event(0, EventKind.REWARD_EPOCH_STARTED)
        driver = rewards()

        await driver._fire()
        assert len(driver.scheduler.pending) == 1
