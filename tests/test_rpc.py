"""
JSON-RPC authority tests against a mocked transport.

Run with:
    pytest tests/test_rpc.py -v
"""

import json

import httpx
import pytest

from fspsim.authority.rpc import JsonRpcAuthority
from fspsim.constants import DEFAULT_OFFERS
from fspsim.exceptions import AuthorityError
from fspsim.protocol.offers import offers_from_dicts

from conftest import T0

URL = "http://authority.test/ext/fsp"


class FakeNode:
    """Records JSON-RPC requests and answers from a method → result table."""

    def __init__(self, results=None, status_code=200):
        self.results = results or {}
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        method = payload["method"]
        if method not in self.results:
            body = {"jsonrpc": "2.0", "id": payload["id"], "error": {"code": -32601, "message": "method not found"}}
        else:
            body = {"jsonrpc": "2.0", "id": payload["id"], "result": self.results[method]}
        return httpx.Response(self.status_code, json=body)

    @property
    def last(self):
        return self.requests[-1]


@pytest.fixture
def node():
    return FakeNode()


@pytest.fixture
def rpc(node):
    client = httpx.AsyncClient(transport=httpx.MockTransport(node))
    return JsonRpcAuthority(URL, client=client)


# ============================================================================
# Transport
# ============================================================================


class TestTransport:

    @pytest.mark.asyncio
    async def test_request_shape(self, rpc, node):
        node.results["fsp_currentRewardEpoch"] = 7
        assert await rpc.current_reward_epoch() == 7
        assert node.last["jsonrpc"] == "2.0"
        assert node.last["method"] == "fsp_currentRewardEpoch"
        assert "params" not in node.last

    @pytest.mark.asyncio
    async def test_ids_increase(self, rpc, node):
        node.results["fsp_randomnessQuality"] = True
        await rpc.randomness_quality()
        await rpc.randomness_quality()
        assert node.requests[1]["id"] > node.requests[0]["id"]

    @pytest.mark.asyncio
    async def test_error_object(self, rpc):
        with pytest.raises(AuthorityError) as exc_info:
            await rpc.current_reward_epoch()
        assert "method not found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_http_error_status(self, node):
        node.status_code = 503
        async with httpx.AsyncClient(transport=httpx.MockTransport(node)) as client:
            with pytest.raises(AuthorityError):
                await JsonRpcAuthority(URL, client=client).current_reward_epoch()

    @pytest.mark.asyncio
    async def test_network_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
            with pytest.raises(AuthorityError):
                await JsonRpcAuthority(URL, client=client).heartbeat()


# ============================================================================
# Authority API
# ============================================================================


class TestMethods:

    @pytest.mark.asyncio
    async def test_heartbeat(self, rpc, node):
        logs = [{"event": "NewVotingRoundInitiated", "args": {}}]
        node.results["fsp_heartbeat"] = {"blockTimestamp": T0, "logs": logs}
        heartbeat = await rpc.heartbeat()
        assert heartbeat.block_timestamp == T0
        assert heartbeat.logs == logs

    @pytest.mark.asyncio
    async def test_malformed_heartbeat(self, rpc, node):
        node.results["fsp_heartbeat"] = {"logs": []}
        with pytest.raises(AuthorityError):
            await rpc.heartbeat()

    @pytest.mark.asyncio
    async def test_register_voter(self, rpc, node, participants):
        node.results["fsp_registerVoter"] = None
        participant = participants[0]
        signature = participant.signing_policy.sign_registration(3, participant.identity.address)
        await rpc.register_voter(3, participant, signature)

        params = node.last["params"][0]
        assert params["rewardEpochId"] == 3
        assert params["voter"] == participant.identity.address
        assert params["signingPolicyAddress"] == participant.voter_address
        assert params["signature"]["v"] in (27, 28)

    @pytest.mark.asyncio
    async def test_sign_policy_ack(self, rpc, node, participants):
        node.results["fsp_signNewSigningPolicy"] = {
            "event": "SigningPolicySigned",
            "args": {"thresholdReached": True},
        }
        policy_hash = b'\x33' * 32
        ack = await rpc.sign_policy(2, policy_hash, participants[0].signing_policy.sign_hash(policy_hash))
        assert ack.acknowledged and ack.threshold_reached
        assert node.last["params"][0]["signingPolicyHash"] == "0x" + "33" * 32

    @pytest.mark.asyncio
    async def test_sign_policy_without_event(self, rpc, node, participants):
        node.results["fsp_signNewSigningPolicy"] = None
        policy_hash = b'\x33' * 32
        ack = await rpc.sign_policy(2, policy_hash, participants[0].signing_policy.sign_hash(policy_hash))
        assert not ack.acknowledged

    @pytest.mark.asyncio
    async def test_submissions_use_role_addresses(self, rpc, node, participants):
        for method in ("fsp_submit1", "fsp_submit2", "fsp_submitSignatures"):
            node.results[method] = None
        participant = participants[0]

        await rpc.submit1(participant.submit)
        assert node.last["params"] == [participant.submit.address]
        await rpc.submit_signatures(participant.submit_signatures)
        assert node.last["params"] == [participant.submit_signatures.address]

        with pytest.raises(TypeError):
            await rpc.submit2(participant.signing_policy)

    @pytest.mark.asyncio
    async def test_relay_hex(self, rpc, node):
        node.results["fsp_relay"] = None
        await rpc.relay(b'\x01\x02')
        assert node.last["params"] == ["0x0102"]

    @pytest.mark.asyncio
    async def test_hash_results_decoded(self, rpc, node):
        node.results["fsp_toSigningPolicyHash"] = "0x" + "aa" * 32
        node.results["fsp_getConfirmedMerkleRoot"] = "0x" + "bb" * 32
        assert await rpc.policy_hash(1) == b'\xaa' * 32
        assert await rpc.confirmed_merkle_root(100, 4) == b'\xbb' * 32
        assert node.last["params"] == [100, 4]

    @pytest.mark.asyncio
    async def test_offer_rewards_value(self, rpc, node):
        node.results["fsp_offerRewards"] = None
        await rpc.offer_rewards(4, offers_from_dicts(DEFAULT_OFFERS))
        params = node.last["params"][0]
        assert params["rewardEpochId"] == 4
        assert params["value"] == 75_000_000
        assert len(params["offers"]) == 2
