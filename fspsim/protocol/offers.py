"""
FSP Reward Offers

Community reward offers made once per reward epoch. Each offer targets one
feed, identified by a 21 byte feed id: a category byte followed by the feed
name in ASCII, zero-padded to 20 bytes.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List

from ..constants import FEED_ID_NAME_BYTES, PPM_MAX
from ..crypto import to_checksum_address
from ..exceptions import ConfigurationError

ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'


def encode_feed_id(category: int, name: str) -> bytes:
    """
    Encode a feed id.

    Args:
        category: Feed category (1 for crypto pairs)
        name: Feed name such as "BTC/USD"
    """
    if not 0 <= category <= 255:
        raise ConfigurationError(f"Feed category out of range: {category}")
    raw_name = name.encode('ascii')
    if len(raw_name) > FEED_ID_NAME_BYTES:
        raise ConfigurationError(f"Feed name longer than {FEED_ID_NAME_BYTES} bytes: {name}")
    return bytes([category]) + raw_name.ljust(FEED_ID_NAME_BYTES, b'\x00')


def decode_feed_id(feed_id: bytes) -> tuple:
    """Inverse of encode_feed_id: returns (category, name)."""
    if len(feed_id) != 1 + FEED_ID_NAME_BYTES:
        raise ConfigurationError(f"Feed id must be {1 + FEED_ID_NAME_BYTES} bytes")
    return feed_id[0], feed_id[1:].rstrip(b'\x00').decode('ascii')


@dataclass(frozen=True)
class RewardOffer:
    """
    A reward offer for one feed.

    Attributes:
        amount: Offered amount in wei
        feed_id: Encoded feed id
        min_rewarded_turnout_bips: Minimal turnout for the offer to pay out
        primary_band_reward_share_ppm: Share of the reward for the primary band
        secondary_band_width_ppm: Width of the secondary band around the median
        claim_back_address: Receives the amount if the offer is not paid out
    """
    amount: int
    feed_id: bytes
    min_rewarded_turnout_bips: int
    primary_band_reward_share_ppm: int
    secondary_band_width_ppm: int
    claim_back_address: str = ZERO_ADDRESS

    def __post_init__(self):
        if self.amount <= 0:
            raise ConfigurationError("Reward offer amount must be positive")
        if not 0 <= self.min_rewarded_turnout_bips <= 10_000:
            raise ConfigurationError("min_rewarded_turnout_bips must be within 0..10000")
        for name in ('primary_band_reward_share_ppm', 'secondary_band_width_ppm'):
            if not 0 <= getattr(self, name) <= PPM_MAX:
                raise ConfigurationError(f"{name} must be within 0..{PPM_MAX}")
        decode_feed_id(self.feed_id)
        try:
            object.__setattr__(self, 'claim_back_address', to_checksum_address(self.claim_back_address))
        except ValueError as e:
            raise ConfigurationError(f"Invalid claim back address: {e}")

    @property
    def feed_name(self) -> str:
        return decode_feed_id(self.feed_id)[1]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RewardOffer":
        """
        Create from a config entry. The feed is given either as `feed_id`
        (hex) or as `feed_category` plus `feed_name`.
        """
        if 'feed_id' in data:
            raw = data['feed_id']
            feed_id = bytes.fromhex(raw[2:] if raw.startswith('0x') else raw)
        else:
            feed_id = encode_feed_id(int(data.get('feed_category', 1)), data['feed_name'])

        return cls(
            amount=int(data['amount']),
            feed_id=feed_id,
            min_rewarded_turnout_bips=int(data['min_rewarded_turnout_bips']),
            primary_band_reward_share_ppm=int(data['primary_band_reward_share_ppm']),
            secondary_band_width_ppm=int(data['secondary_band_width_ppm']),
            claim_back_address=data.get('claim_back_address', ZERO_ADDRESS),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'amount': self.amount,
            'feed_id': '0x' + self.feed_id.hex(),
            'min_rewarded_turnout_bips': self.min_rewarded_turnout_bips,
            'primary_band_reward_share_ppm': self.primary_band_reward_share_ppm,
            'secondary_band_width_ppm': self.secondary_band_width_ppm,
            'claim_back_address': self.claim_back_address,
        }


def offers_total(offers: Iterable[RewardOffer]) -> int:
    """Value to send with an offer transaction."""
    return sum(offer.amount for offer in offers)


def offers_from_dicts(entries: Iterable[Dict[str, Any]]) -> List[RewardOffer]:
    return [RewardOffer.from_dict(entry) for entry in entries]
