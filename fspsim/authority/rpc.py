"""
FSP JSON-RPC Authority

Talks to a remote authority over JSON-RPC 2.0. Every Authority method maps
to one `fsp_*` call; bytes travel as 0x-prefixed hex and addresses in
checksum form.
"""

import json
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx
from eth_utils import decode_hex

from ..crypto import Signature
from ..exceptions import AuthorityError
from ..logger import get_logger
from ..protocol.offers import RewardOffer, offers_total
from ..protocol.participants import (
    RegisteredParticipant,
    SubmitKey,
    SubmitSignaturesKey,
)
from .base import Authority, HeartbeatResult, SignPolicyAck

logger = get_logger(__name__)


def _signature_params(signature: Signature) -> Dict[str, Any]:
    return {'v': signature.v + 27, 'r': hex(signature.r), 's': hex(signature.s)}


class JsonRpcAuthority(Authority):
    """
    Authority reached through a JSON-RPC endpoint.

    Transport failures and JSON-RPC errors surface as AuthorityError.
    """

    _rpc_id_counter = 0

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url.rstrip('/')
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    # -----------------------------------------------------------------
    #  Low-level JSON-RPC transport
    # -----------------------------------------------------------------

    @classmethod
    def _next_id(cls) -> int:
        cls._rpc_id_counter += 1
        return cls._rpc_id_counter

    async def _rpc_call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Send a JSON-RPC 2.0 request and return its `result`.

        Raises:
            AuthorityError: network failure, HTTP error status, malformed
                response or a JSON-RPC error object
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "id": self._next_id(),
        }
        if params is not None:
            payload["params"] = params

        start_time = time.time()
        try:
            response = await self.client.post(
                self.url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            elapsed = time.time() - start_time
            logger.debug(f"RPC {method} → {self.url} [{response.status_code}] ({elapsed:.3f}s)")
            response.raise_for_status()
            body = response.json()
        except httpx.RequestError as exc:
            elapsed = time.time() - start_time
            logger.warning(f"RPC {method} → {self.url} NETWORK_ERROR ({elapsed:.3f}s)")
            raise AuthorityError(f"{method}: {exc}") from exc
        except (json.JSONDecodeError, httpx.HTTPStatusError) as exc:
            elapsed = time.time() - start_time
            logger.warning(f"RPC {method} → {self.url} ERROR ({elapsed:.3f}s): {exc}")
            raise AuthorityError(f"{method}: {exc}") from exc

        if not isinstance(body, dict):
            raise AuthorityError(f"{method}: malformed response")
        error = body.get("error")
        if error is not None:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise AuthorityError(f"{method}: {message}")
        return body.get("result")

    async def close(self):
        if self._owns_client:
            await self.client.aclose()

    # -----------------------------------------------------------------
    #  Authority API
    # -----------------------------------------------------------------

    async def heartbeat(self) -> HeartbeatResult:
        result = await self._rpc_call("fsp_heartbeat")
        try:
            return HeartbeatResult(
                block_timestamp=int(result["blockTimestamp"]),
                logs=list(result.get("logs") or []),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise AuthorityError(f"fsp_heartbeat: malformed result: {e}")

    async def current_reward_epoch(self) -> int:
        return int(await self._rpc_call("fsp_currentRewardEpoch"))

    async def randomness_quality(self) -> bool:
        return bool(await self._rpc_call("fsp_randomnessQuality"))

    async def register_voter(self, reward_epoch_id: int, participant: RegisteredParticipant, signature: Signature):
        await self._rpc_call("fsp_registerVoter", [{
            "rewardEpochId": reward_epoch_id,
            "voter": participant.identity.address,
            "submitAddress": participant.submit.address,
            "submitSignaturesAddress": participant.submit_signatures.address,
            "signingPolicyAddress": participant.signing_policy.address,
            "signature": _signature_params(signature),
        }])

    async def sign_policy(self, reward_epoch_id: int, policy_hash: bytes, signature: Signature) -> SignPolicyAck:
        result = await self._rpc_call("fsp_signNewSigningPolicy", [{
            "rewardEpochId": reward_epoch_id,
            "signingPolicyHash": "0x" + policy_hash.hex(),
            "signature": _signature_params(signature),
        }])
        # The authority answers with the decoded receipt log, if any
        result = result or {}
        return SignPolicyAck(
            acknowledged=result.get("event") == "SigningPolicySigned",
            threshold_reached=bool((result.get("args") or {}).get("thresholdReached", False)),
        )

    async def policy_hash(self, reward_epoch_id: int) -> bytes:
        return decode_hex(await self._rpc_call("fsp_toSigningPolicyHash", [reward_epoch_id]))

    async def submit1(self, key: SubmitKey):
        SubmitKey.require(key)
        await self._rpc_call("fsp_submit1", [key.address])

    async def submit2(self, key: SubmitKey):
        SubmitKey.require(key)
        await self._rpc_call("fsp_submit2", [key.address])

    async def submit_signatures(self, key: SubmitSignaturesKey):
        SubmitSignaturesKey.require(key)
        await self._rpc_call("fsp_submitSignatures", [key.address])

    async def relay(self, data: bytes):
        await self._rpc_call("fsp_relay", ["0x" + data.hex()])

    async def offer_rewards(self, reward_epoch_id: int, offers: Sequence[RewardOffer]):
        await self._rpc_call("fsp_offerRewards", [{
            "rewardEpochId": reward_epoch_id,
            "offers": [offer.to_dict() for offer in offers],
            "value": offers_total(offers),
        }])

    async def epoch_settings(self) -> Dict[str, Any]:
        return await self._rpc_call("fsp_epochSettings")

    async def confirmed_merkle_root(self, protocol_id: int, voting_round_id: int) -> bytes:
        return decode_hex(await self._rpc_call("fsp_getConfirmedMerkleRoot", [protocol_id, voting_round_id]))
