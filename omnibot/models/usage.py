"""
Usage counter and pricing tier models.

UsageData is the persisted shape of the monthly counters; PricingTier holds the
quota limits each subscription plan allows.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List


class UsageKind(str, Enum):
    CONVERSATION = "conversation"
    CREATIVE = "creative"


@dataclass
class UsageData:
    """Counters for the current billing month."""

    conversations: int = 0
    creative: int = 0
    last_reset: str = ""  # ISO date of the first day of the counted month

    def count(self, kind: UsageKind) -> int:
        return self.conversations if kind is UsageKind.CONVERSATION else self.creative

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UsageData":
        """
        Raises:
            ValueError: If `data` is not a mapping or a counter is not an integer
        """
        if not isinstance(data, dict):
            raise ValueError(f"Usage data must be an object, got {type(data).__name__}")
        return cls(
            conversations=int(data.get("conversations", 0)),
            creative=int(data.get("creative", 0)),
            last_reset=str(data.get("last_reset", "")),
        )


@dataclass(frozen=True)
class PricingTier:
    id: str
    name: str
    price: int
    limit_platforms: int
    limit_conversations: int
    limit_creative: int
    has_advanced_ai: bool

    def limit(self, kind: UsageKind) -> int:
        return self.limit_conversations if kind is UsageKind.CONVERSATION else self.limit_creative


PRICING_TIERS: List[PricingTier] = [
    PricingTier("starter", "Starter Node", 97, 2, 1000, 10, False),
    PricingTier("pro", "Pro Elite", 297, 6, 5000, 50, True),
    PricingTier("enterprise", "Neural Enterprise", 997, 10, 999999, 1000, True),
]
