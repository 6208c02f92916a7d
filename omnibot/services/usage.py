"""
Monthly usage counters with an injected persistence store.

The service is constructed explicitly and handed to whatever records usage
(the relay counts opened voice sessions, the generation endpoint counts
generations). Persistence goes through a small store interface so tests can
use memory and the server a JSON file.
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

from omnibot.config.constants import LOGGER_NAME
from omnibot.models.usage import PRICING_TIERS, PricingTier, UsageData, UsageKind

logger = logging.getLogger(LOGGER_NAME)


class UsageStore(Protocol):
    def load(self) -> Optional[Dict[str, Any]]: ...

    def save(self, data: Dict[str, Any]) -> None: ...


class InMemoryUsageStore:
    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data = data

    def load(self) -> Optional[Dict[str, Any]]:
        return dict(self.data) if self.data is not None else None

    def save(self, data: Dict[str, Any]) -> None:
        self.data = dict(data)


class JsonFileUsageStore:
    """Stores the counters as a JSON document on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        with self.path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f)
        tmp_path.replace(self.path)


def first_day_of_month(now: datetime) -> str:
    return datetime(now.year, now.month, 1).isoformat()


class UsageCounterService:
    """
    Counts conversations and creative generations for the current month.

    Counters reset when the month changes. Store failures are logged and never
    propagate to the caller.
    """

    def __init__(self, store: UsageStore, now: Callable[[], datetime] = datetime.now):
        self.store = store
        self.now = now
        self._lock = threading.Lock()
        self.usage = UsageData(last_reset=first_day_of_month(self.now()))

    def _needs_reset(self, usage: UsageData) -> bool:
        try:
            last_reset = datetime.fromisoformat(usage.last_reset)
        except ValueError:
            return True
        now = self.now()
        return (last_reset.year, last_reset.month) != (now.year, now.month)

    def load(self) -> UsageData:
        """Load counters from the store, starting fresh if they belong to an earlier month."""
        try:
            stored = self.store.load()
            usage = UsageData.from_dict(stored) if stored is not None else None
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to load usage data, starting fresh: {e}")
            usage = None
        with self._lock:
            if usage is not None:
                if self._needs_reset(usage):
                    usage = UsageData(last_reset=first_day_of_month(self.now()))
                self.usage = usage
            return self.usage

    def _save(self) -> None:
        try:
            self.store.save(self.usage.to_dict())
        except (OSError, TypeError) as e:
            logger.error(f"Failed to save usage data: {e}")

    def increment(self, kind: UsageKind) -> UsageData:
        with self._lock:
            if self._needs_reset(self.usage):
                self.usage = UsageData(last_reset=first_day_of_month(self.now()))
                logger.info("Monthly usage reset")
            if kind is UsageKind.CONVERSATION:
                self.usage.conversations += 1
            else:
                self.usage.creative += 1
            self._save()
            return self.usage

    def reset_monthly(self) -> UsageData:
        with self._lock:
            self.usage = UsageData(last_reset=first_day_of_month(self.now()))
            self._save()
        logger.info("Monthly usage reset")
        return self.usage

    def is_within_limits(self, tier: PricingTier) -> bool:
        return (
            self.usage.conversations < tier.limit_conversations
            and self.usage.creative < tier.limit_creative
        )

    def remaining(self, kind: UsageKind, tier: PricingTier) -> int:
        return max(0, tier.limit(kind) - self.usage.count(kind))

    def percentage(self, kind: UsageKind, tier: PricingTier) -> float:
        limit = tier.limit(kind)
        if limit == 0:
            return 0.0
        return min(100.0, self.usage.count(kind) / limit * 100)

    def snapshot(self) -> Dict[str, Any]:
        """Counters plus remaining quota for every pricing tier."""
        return {
            "usage": self.usage.to_dict(),
            "tiers": {
                tier.id: {
                    "within_limits": self.is_within_limits(tier),
                    "remaining": {kind.value: self.remaining(kind, tier) for kind in UsageKind},
                    "percentage": {kind.value: self.percentage(kind, tier) for kind in UsageKind},
                }
                for tier in PRICING_TIERS
            },
        }
