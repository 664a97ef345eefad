from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass
class PromotionSnapshot:
    claims: Dict[str, int]
    redemptions: Dict[str, int]
    conflicts: Dict[str, int]
    distribution: Dict[str, int]

    def as_dict(self) -> Dict[str, object]:
        return {
            "claims": dict(self.claims),
            "redemptions": dict(self.redemptions),
            "conflicts": dict(self.conflicts),
            "distribution": dict(self.distribution),
        }


class PromotionObservabilityStore:
    """Counters for ledger and promotion outcomes."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._claims: Dict[str, int] = defaultdict(int)
        self._redemptions: Dict[str, int] = defaultdict(int)
        self._conflicts: Dict[str, int] = defaultdict(int)
        self._distribution: Dict[str, int] = defaultdict(int)

    def record_claim(self, outcome: str) -> None:
        with self._lock:
            self._claims[outcome] += 1

    def record_redemption(self, kind: str, outcome: str) -> None:
        with self._lock:
            self._redemptions[f"{kind}:{outcome}"] += 1

    def record_conflict(self, transaction: str) -> None:
        with self._lock:
            self._conflicts[transaction] += 1

    def record_chunk(self, *, committed: bool, size: int) -> None:
        with self._lock:
            if committed:
                self._distribution["chunks_committed"] += 1
                self._distribution["instances_issued"] += size
            else:
                self._distribution["chunks_failed"] += 1
                self._distribution["instances_failed"] += size

    def snapshot(self) -> PromotionSnapshot:
        with self._lock:
            return PromotionSnapshot(
                claims=dict(self._claims),
                redemptions=dict(self._redemptions),
                conflicts=dict(self._conflicts),
                distribution=dict(self._distribution),
            )

    def reset(self) -> None:
        with self._lock:
            self._claims.clear()
            self._redemptions.clear()
            self._conflicts.clear()
            self._distribution.clear()


_STORE = PromotionObservabilityStore()


def get_promotion_store() -> PromotionObservabilityStore:
    return _STORE


__all__ = ["get_promotion_store", "PromotionObservabilityStore", "PromotionSnapshot"]
