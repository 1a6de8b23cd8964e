"""
FSP Local Authority

In-process, deterministic stand-in for the on-chain authority: the system
manager, voter registry and relay rolled into one object driven by a Clock.

Phase transitions are evaluated lazily whenever the authority is called, and
the resulting events are handed out on the next heartbeat. For the signing
policy of reward epoch N = current + 1, with P the protocol start
(`reward_epoch_start(N) - new_signing_policy_initialization_start_seconds`):

    P                        RandomAcquisitionStarted
    P + init_offset // 3     VotePowerBlockSelected, registration opens
    + registration minimum   SigningPolicyInitialized, registration closes

Reward epoch N starts (RewardEpochStarted) at the first call at or after
`reward_epoch_start(N)` once its policy has been signed by threshold weight.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..constants import (
    FTSO_PROTOCOL_ID,
    MAX_UINT16,
    PPM_MAX,
    SIGNING_POLICY_MIN_NUMBER_OF_VOTERS,
    SIGNING_POLICY_THRESHOLD_PPM,
)
from ..crypto import Signature, keccak256, normalize_address, recover_message_signer, same_address
from ..exceptions import AuthorityError, ConfigurationError, EncodingError, InvalidKeyError
from ..logger import get_logger
from ..protocol.epoch import EpochClock
from ..protocol.events import EventKind
from ..protocol.messages import RelayMessage, strip_relay_selector
from ..protocol.offers import RewardOffer
from ..protocol.participants import (
    RegisteredParticipant,
    SubmitKey,
    SubmitSignaturesKey,
    registration_hash,
)
from ..protocol.signing_policy import SigningPolicy
from ..scheduler import Clock
from .base import Authority, HeartbeatResult, SignPolicyAck

logger = get_logger(__name__)

DEFAULT_VOTER_WEIGHT = 1000


def policy_threshold(total_weight: int, threshold_ppm: int = SIGNING_POLICY_THRESHOLD_PPM) -> int:
    return total_weight * threshold_ppm // PPM_MAX


def normalize_weights(weights: Sequence[int]) -> Tuple[int, ...]:
    """Scale weights down proportionally when their total does not fit a uint16."""
    total = sum(weights)
    if total <= MAX_UINT16:
        return tuple(weights)
    return tuple(weight * MAX_UINT16 // total for weight in weights)


def build_initial_policy(
    participants: Sequence[RegisteredParticipant],
    reward_epoch_id: int,
    start_voting_round_id: int,
    weight: int = DEFAULT_VOTER_WEIGHT,
    threshold_ppm: int = SIGNING_POLICY_THRESHOLD_PPM,
) -> SigningPolicy:
    """Equal-weight policy over `participants`, in the given order."""
    weights = normalize_weights([weight] * len(participants))
    return SigningPolicy(
        reward_epoch_id=reward_epoch_id,
        start_voting_round_id=start_voting_round_id,
        threshold=policy_threshold(sum(weights), threshold_ppm),
        seed=keccak256(b'initial-seed' + reward_epoch_id.to_bytes(3, 'big')),
        voters=tuple(p.voter_address for p in participants),
        weights=tuple(weights),
    )


@dataclass(frozen=True)
class _Registration:
    identity: str
    signing_policy_address: str
    weight: int


class LocalAuthority(Authority):
    """
    Deterministic authority over a Clock.

    Args:
        clock: Time source shared with the simulation
        epochs: Epoch timing
        initial_policy: Ratified policy of the reward epoch the run starts in
        voter_weights: Weight per identity address; unlisted voters get
            `default_weight`
        secure_random: Reported randomness quality
    """

    def __init__(
        self,
        clock: Clock,
        epochs: EpochClock,
        initial_policy: SigningPolicy,
        voter_weights: Optional[Dict[str, int]] = None,
        default_weight: int = DEFAULT_VOTER_WEIGHT,
        threshold_ppm: int = SIGNING_POLICY_THRESHOLD_PPM,
        min_voters: int = SIGNING_POLICY_MIN_NUMBER_OF_VOTERS,
        secure_random: bool = True,
    ):
        init_offset = epochs.new_signing_policy_initialization_start_seconds
        if init_offset <= 0:
            raise ConfigurationError("LocalAuthority needs a positive signing policy initialization offset")
        if init_offset // 3 + epochs.voter_registration_min_duration_seconds >= init_offset:
            raise ConfigurationError(
                "Voter registration window does not fit before the reward epoch boundary"
            )

        self.clock = clock
        self.epochs = epochs
        self.secure_random = secure_random
        self.threshold_ppm = threshold_ppm
        self.min_voters = min_voters
        self.default_weight = default_weight
        self.voter_weights = {normalize_address(k): v for k, v in (voter_weights or {}).items()}

        self._current_epoch = initial_policy.reward_epoch_id
        self._policies: Dict[int, SigningPolicy] = {initial_policy.reward_epoch_id: initial_policy}
        self._ratified: Set[int] = {initial_policy.reward_epoch_id}
        self._signed: Dict[int, Set[int]] = {}
        self._registrations: Dict[int, Dict[str, _Registration]] = {}
        self._phases: Dict[int, Dict[str, int]] = {}
        self._last_round = -1
        self._pending_logs: List[Dict[str, Any]] = []

        self.confirmed_roots: Dict[Tuple[int, int], bytes] = {}
        self.submissions: Dict[str, Dict[int, List[str]]] = {
            'submit1': {}, 'submit2': {}, 'submitSignatures': {},
        }
        self.offers: Dict[int, List[RewardOffer]] = {}

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def policies(self) -> Dict[int, SigningPolicy]:
        return dict(self._policies)

    def is_ratified(self, reward_epoch_id: int) -> bool:
        return reward_epoch_id in self._ratified

    def registered_voters(self, reward_epoch_id: int) -> List[str]:
        """Identity addresses registered for a reward epoch, in registration order."""
        return [r.identity for r in self._registrations.get(reward_epoch_id, {}).values()]

    def _emit(self, kind: EventKind, **args):
        self._pending_logs.append({'event': kind.value, 'args': args})

    def _sync(self) -> int:
        """Apply every phase transition due at the current time."""
        now = int(self.clock.now())
        if now < self.epochs.first_voting_round_start_ts:
            return now

        voting_round = self.epochs.voting_round_at(now)
        if voting_round > self._last_round:
            self._last_round = voting_round
            self._emit(EventKind.VOTING_ROUND_INITIATED)

        upcoming = self._current_epoch + 1
        if upcoming in self._ratified and now >= self.epochs.reward_epoch_start(upcoming):
            self._current_epoch = upcoming
            start_round = max(self.epochs.reward_epoch_start_round(upcoming), voting_round)
            logger.info(f"[epoch {upcoming}] reward epoch started at round {start_round}")
            self._emit(
                EventKind.REWARD_EPOCH_STARTED,
                rewardEpochId=upcoming, startVotingRoundId=start_round, timestamp=now,
            )

        self._advance_signing_policy(now)
        return now

    def _advance_signing_policy(self, now: int):
        current = self._current_epoch
        target = current + 1
        phases = self._phases.setdefault(target, {})
        protocol_start = self.epochs.signing_policy_protocol_start(current)
        vote_power_delay = self.epochs.new_signing_policy_initialization_start_seconds // 3

        if 'random' not in phases and now >= protocol_start:
            phases['random'] = now
            logger.info(f"[policy {target}] random acquisition started")
            self._emit(EventKind.RANDOM_ACQUISITION_STARTED, rewardEpochId=current, timestamp=now)

        if 'random' in phases and 'vote_power' not in phases and now >= protocol_start + vote_power_delay:
            phases['vote_power'] = now
            logger.info(f"[policy {target}] vote power block selected, registration open")
            self._emit(
                EventKind.VOTE_POWER_BLOCK_SELECTED,
                rewardEpochId=current, votePowerBlock=now, timestamp=now,
            )

        if (
            'vote_power' in phases and 'initialized' not in phases and
            now >= phases['vote_power'] + self.epochs.voter_registration_min_duration_seconds
        ):
            phases['initialized'] = now
            self._initialize_policy(target, now)

    def _initialize_policy(self, reward_epoch_id: int, now: int):
        registered = list(self._registrations.get(reward_epoch_id, {}).values())
        if len(registered) < self.min_voters:
            previous = self._policies[self._current_epoch]
            logger.warning(
                f"[policy {reward_epoch_id}] only {len(registered)} voters registered "
                f"(minimum {self.min_voters}), carrying over the previous voter set"
            )
            voters, weights = previous.voters, previous.weights
        else:
            voters = tuple(r.signing_policy_address for r in registered)
            weights = normalize_weights([r.weight for r in registered])

        policy = SigningPolicy(
            reward_epoch_id=reward_epoch_id,
            start_voting_round_id=self.epochs.reward_epoch_start_round(reward_epoch_id),
            threshold=policy_threshold(sum(weights), self.threshold_ppm),
            seed=keccak256(self._policies[self._current_epoch].seed + reward_epoch_id.to_bytes(3, 'big')),
            voters=voters,
            weights=weights,
        )
        self._policies[reward_epoch_id] = policy
        self._signed[reward_epoch_id] = set()
        logger.info(
            f"[policy {reward_epoch_id}] signing policy initialized with {len(voters)} voters, "
            f"threshold {policy.threshold}/{policy.total_weight}"
        )
        self._emit(EventKind.SIGNING_POLICY_INITIALIZED, timestamp=now, **policy.to_dict())

    # =========================================================================
    # AUTHORITY API
    # =========================================================================

    async def heartbeat(self) -> HeartbeatResult:
        now = self._sync()
        logs, self._pending_logs = self._pending_logs, []
        return HeartbeatResult(block_timestamp=now, logs=logs)

    async def current_reward_epoch(self) -> int:
        self._sync()
        return self._current_epoch

    async def randomness_quality(self) -> bool:
        self._sync()
        return self.secure_random

    async def register_voter(self, reward_epoch_id: int, participant: RegisteredParticipant, signature: Signature):
        self._sync()
        phases = self._phases.get(reward_epoch_id, {})
        if reward_epoch_id != self._current_epoch + 1 or 'vote_power' not in phases or 'initialized' in phases:
            raise AuthorityError(f"Voter registration is not open for reward epoch {reward_epoch_id}")

        identity = participant.identity.address
        try:
            signer = recover_message_signer(registration_hash(reward_epoch_id, identity), signature)
        except InvalidKeyError as e:
            raise AuthorityError(f"Invalid registration signature: {e}")
        if not same_address(signer, participant.signing_policy.address):
            raise AuthorityError(f"Registration for {identity} not signed by its signing policy address")

        registrations = self._registrations.setdefault(reward_epoch_id, {})
        registrations[normalize_address(identity)] = _Registration(
            identity=identity,
            signing_policy_address=participant.signing_policy.address,
            weight=self.voter_weights.get(normalize_address(identity), self.default_weight),
        )

    async def sign_policy(self, reward_epoch_id: int, policy_hash: bytes, signature: Signature) -> SignPolicyAck:
        self._sync()
        policy = self._policies.get(reward_epoch_id)
        if policy is None or reward_epoch_id not in self._signed:
            raise AuthorityError(f"No signing policy to sign for reward epoch {reward_epoch_id}")
        if reward_epoch_id in self._ratified:
            raise AuthorityError(f"Signing policy for reward epoch {reward_epoch_id} already signed")
        if policy_hash != policy.hash():
            return SignPolicyAck(acknowledged=False)

        try:
            signer = recover_message_signer(policy_hash, signature)
        except InvalidKeyError:
            return SignPolicyAck(acknowledged=False)
        index = policy.voter_index(signer)
        if index is None:
            return SignPolicyAck(acknowledged=False)

        signed = self._signed[reward_epoch_id]
        signed.add(index)
        threshold_reached = policy.weight_of(signed) >= policy.threshold
        if threshold_reached:
            self._ratified.add(reward_epoch_id)
            logger.info(f"[policy {reward_epoch_id}] threshold reached")

        self._emit(
            EventKind.SIGNING_POLICY_SIGNED,
            rewardEpochId=reward_epoch_id,
            signingPolicyAddress=signer,
            voter=signer,
            thresholdReached=threshold_reached,
            timestamp=int(self.clock.now()),
        )
        return SignPolicyAck(acknowledged=True, threshold_reached=threshold_reached)

    async def policy_hash(self, reward_epoch_id: int) -> bytes:
        self._sync()
        policy = self._policies.get(reward_epoch_id)
        if policy is None:
            raise AuthorityError(f"No signing policy for reward epoch {reward_epoch_id}")
        return policy.hash()

    def _record_submission(self, kind: str, address: str):
        now = self._sync()
        voting_round = self.epochs.voting_round_at(now)
        self.submissions[kind].setdefault(voting_round, []).append(address)

    async def submit1(self, key: SubmitKey):
        SubmitKey.require(key)
        self._record_submission('submit1', key.address)

    async def submit2(self, key: SubmitKey):
        SubmitKey.require(key)
        self._record_submission('submit2', key.address)

    async def submit_signatures(self, key: SubmitSignaturesKey):
        SubmitSignaturesKey.require(key)
        self._record_submission('submitSignatures', key.address)

    async def relay(self, data: bytes):
        self._sync()
        try:
            relay_message = RelayMessage.decode(strip_relay_selector(data))
        except (EncodingError, InvalidKeyError) as e:
            raise AuthorityError(f"Malformed relay message: {e}")

        message = relay_message.message
        try:
            reward_epoch_id = self.epochs.reward_epoch_for_round(message.voting_round_id)
        except ValueError as e:
            raise AuthorityError(str(e))

        policy = self._policies.get(reward_epoch_id)
        if policy is None or policy != relay_message.signing_policy:
            raise AuthorityError(f"Relay message does not carry the policy of reward epoch {reward_epoch_id}")

        key = (message.protocol_id, message.voting_round_id)
        if key in self.confirmed_roots:
            raise AuthorityError(f"Round {message.voting_round_id} already finalized")

        digest = message.hash()
        for item in relay_message.signatures:
            try:
                signer = recover_message_signer(digest, item.signature)
            except InvalidKeyError as e:
                raise AuthorityError(f"Invalid relay signature: {e}")
            if not same_address(signer, policy.voters[item.index]):
                raise AuthorityError(f"Relay signature at index {item.index} is not from that voter")

        weight = policy.weight_of(relay_message.signer_indices)
        if weight < policy.threshold:
            raise AuthorityError(f"Relay signatures carry weight {weight}, threshold is {policy.threshold}")

        self.confirmed_roots[key] = message.merkle_root

    async def offer_rewards(self, reward_epoch_id: int, offers: Sequence[RewardOffer]):
        self._sync()
        if reward_epoch_id != self._current_epoch + 1:
            raise AuthorityError(
                f"Offers are accepted for reward epoch {self._current_epoch + 1}, not {reward_epoch_id}"
            )
        if not offers:
            raise AuthorityError("No offers given")
        self.offers.setdefault(reward_epoch_id, []).extend(offers)

    async def epoch_settings(self) -> Dict[str, Any]:
        return self.epochs.to_dict()

    async def confirmed_merkle_root(self, protocol_id: int = FTSO_PROTOCOL_ID, voting_round_id: int = 0) -> bytes:
        return self.confirmed_roots.get((protocol_id, voting_round_id), bytes(32))
