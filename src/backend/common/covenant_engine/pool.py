from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, FrozenSet, Iterable, Tuple

from .models import LedgerCategory, LedgerEntry


@dataclass(frozen=True)
class EntryPool:
    """Ledger entries not yet claimed by a bridge line.

    Each `take` returns the claimed entries and a new pool; the original pool is untouched.
    A pool belongs to a single reconciliation run.
    """

    entries: Tuple[LedgerEntry, ...]
    consumed_ids: FrozenSet[str] = frozenset()

    @classmethod
    def from_entries(cls, entries: Iterable[LedgerEntry]) -> "EntryPool":
        return cls(entries=tuple(entries))

    def available(self, categories: Collection[LedgerCategory]) -> Tuple[LedgerEntry, ...]:
        return tuple(
            e for e in self.entries if e.category in categories and e.id not in self.consumed_ids
        )

    def take(
        self, categories: Collection[LedgerCategory]
    ) -> Tuple[Tuple[LedgerEntry, ...], "EntryPool"]:
        matches = self.available(categories)
        if not matches:
            return matches, self
        return matches, EntryPool(
            entries=self.entries,
            consumed_ids=self.consumed_ids | {e.id for e in matches},
        )

    def all_of(self, categories: Collection[LedgerCategory]) -> Tuple[LedgerEntry, ...]:
        """Entries in the given categories regardless of consumption."""
        return tuple(e for e in self.entries if e.category in categories)
