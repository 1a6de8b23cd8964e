"""
Finalization engine tests.

Run with:
    pytest tests/test_finalization.py -v
"""

import pytest

from fspsim.crypto import recover_message_signer
from fspsim.drivers.finalization import FinalizationEngine
from fspsim.exceptions import AuthorityError
from fspsim.protocol.messages import RelayMessage, placeholder_merkle_root, strip_relay_selector
from fspsim.protocol.participants import generate_participants
from fspsim.protocol.signing_policy import SigningPolicy


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def voters():
    """Participants A, B and C."""
    return generate_participants(3)


@pytest.fixture
def policy(voters):
    return SigningPolicy(
        reward_epoch_id=0,
        start_voting_round_id=0,
        threshold=2,
        seed=bytes(32),
        voters=tuple(v.voter_address for v in voters),
        weights=(1, 1, 1),
    )


@pytest.fixture
def engine_for(authority, epochs, state, policy):
    state.policies.install(policy)

    def factory(local_participants):
        return FinalizationEngine(authority, epochs, state, local_participants)
    return factory


# ============================================================================
# Signature ordering
# ============================================================================


class TestSignatureOrder:

    def test_follows_policy_order(self, engine_for, voters, policy):
        a, b, c = voters
        relay = engine_for([c, a]).build(3)

        assert relay.signer_indices == [0, 2]
        digest = relay.message.hash()
        signers = [recover_message_signer(digest, s.signature) for s in relay.signatures]
        assert signers == [a.voter_address, c.voter_address]

    def test_invariant_under_local_permutation(self, engine_for, voters):
        a, b, c = voters
        first = engine_for([a, b, c]).build(4)
        second = engine_for([c, a, b]).build(4)
        assert first.encode() == second.encode()

    def test_non_voter_participants_ignored(self, engine_for, voters):
        outsider = generate_participants(1)[0]
        relay = engine_for([outsider, voters[1]]).build(2)
        assert relay.signer_indices == [1]

    def test_message_content(self, engine_for, voters):
        relay = engine_for(voters).build(7)
        assert relay.message.protocol_id == 100
        assert relay.message.voting_round_id == 7
        assert relay.message.is_secure_random is True
        assert relay.message.merkle_root == placeholder_merkle_root(7)


# ============================================================================
# Submission
# ============================================================================


class TestFinalize:

    @pytest.mark.asyncio
    async def test_relays_call_data(self, engine_for, voters, authority, policy):
        assert await engine_for(voters).finalize(2) is True

        authority.relay.assert_awaited_once()
        data = authority.relay.await_args.args[0]
        relay = RelayMessage.decode(strip_relay_selector(data))
        assert relay.signing_policy == policy
        assert relay.message.voting_round_id == 2
        assert relay.signer_indices == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_missing_policy_skips(self, authority, epochs, state, voters):
        engine = FinalizationEngine(authority, epochs, state, voters)
        # round 5 belongs to reward epoch 1, which has no policy
        assert engine.build(5) is None
        assert await engine.finalize(5) is False
        authority.relay.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_relay_failure_is_not_raised(self, engine_for, voters, authority):
        authority.relay.side_effect = AuthorityError("reverted")
        assert await engine_for(voters).finalize(1) is False
