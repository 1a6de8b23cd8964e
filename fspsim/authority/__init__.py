"""
FSP Authority Module

Clients of the protocol authority:
- Authority: the abstract asynchronous interface used by the drivers
- JsonRpcAuthority: remote authority over JSON-RPC 2.0 (httpx)
- LocalAuthority: deterministic in-process authority for local runs and tests
"""

from .base import Authority, HeartbeatResult, SignPolicyAck
from .rpc import JsonRpcAuthority
from .local import LocalAuthority, build_initial_policy, policy_threshold

__all__ = [
    "Authority",
    "HeartbeatResult",
    "SignPolicyAck",
    "JsonRpcAuthority",
    "LocalAuthority",
    "build_initial_policy",
    "policy_threshold",
]
