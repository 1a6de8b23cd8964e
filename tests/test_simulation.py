"""
Simulation wiring tests.

Run with:
    pytest tests/test_simulation.py -v
"""

import pytest

from fspsim.config import SimulationConfig, TimingConfig
from fspsim.drivers.base import Driver
from fspsim.scheduler import VirtualClock
from fspsim.simulation import Simulation

from conftest import T0


class TestStart:

    @pytest.mark.asyncio
    async def test_start_before_first_reward_epoch(self, authority, late_epochs, participants):
        clock = VirtualClock(T0 + 30)
        config = SimulationConfig(timing=TimingConfig(event_poll_interval=1.0, reward_offer_delay=1.0))
        simulation = Simulation(authority, late_epochs, participants, config=config, clock=clock)

        await simulation.start()
        assert simulation.is_running
        armed = {entry.name: entry.fire_at for entry in simulation.scheduler.pending}
        assert armed["voting-round"] == T0 + 40
        assert armed["reward-offers"] == T0 + 201

        await clock.advance(15)
        assert simulation.failures == []

        await simulation.stop()
        assert not simulation.is_running
        authority.close.assert_awaited_once()


class TestDriverBase:

    def test_driver_without_fire_cannot_be_built(self, make_driver):
        with pytest.raises(TypeError):
            make_driver(Driver)
