"""Ledger export adapters (JSON payloads, CSV text) producing LedgerEntry lists (no I/O)."""

from .export import LedgerAdapterError, ledger_entries_from_csv, ledger_entries_from_payload

__all__ = [
    "LedgerAdapterError",
    "ledger_entries_from_csv",
    "ledger_entries_from_payload",
]
