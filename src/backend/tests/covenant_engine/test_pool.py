from decimal import Decimal

from common.covenant_engine.models import LedgerCategory
from common.covenant_engine.pool import EntryPool


def test_take_claims_entries_without_mutating_original(make_entry):
    entries = [
        make_entry(LedgerCategory.DEPRECIATION_AMORTIZATION, Decimal("-10")),
        make_entry(LedgerCategory.RESTRUCTURING, Decimal("-5")),
    ]
    pool = EntryPool.from_entries(entries)

    taken, remaining = pool.take({LedgerCategory.DEPRECIATION_AMORTIZATION})

    assert [e.id for e in taken] == [entries[0].id]
    assert remaining.consumed_ids == {entries[0].id}
    assert pool.consumed_ids == frozenset()


def test_take_skips_consumed_entries(make_entry):
    entries = [make_entry(LedgerCategory.DEPRECIATION_AMORTIZATION, Decimal("-10"))]
    _, pool = EntryPool.from_entries(entries).take({LedgerCategory.DEPRECIATION_AMORTIZATION})

    taken, same = pool.take({LedgerCategory.DEPRECIATION_AMORTIZATION})

    assert taken == ()
    assert same is pool


def test_all_of_ignores_consumption(make_entry):
    entries = [make_entry(LedgerCategory.CASH, Decimal("100"))]
    _, pool = EntryPool.from_entries(entries).take({LedgerCategory.CASH})
    assert pool.all_of({LedgerCategory.CASH}) == tuple(entries)
