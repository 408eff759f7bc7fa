from __future__ import annotations

import csv
import io
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from common.covenant_engine.models import LedgerCategory, LedgerEntry, LedgerSourceSystem


class LedgerAdapterError(ValueError):
    pass


_FIELD_ALIASES = {
    "id": ("id", "entry_id", "entryId"),
    "account_code": ("account_code", "accountCode"),
    "account_name": ("account_name", "accountName"),
    "source_system": ("source_system", "sourceSystem", "source_type", "sourceType"),
    "amount": ("amount",),
    "category": ("category",),
}


def ledger_entries_from_payload(payload: Any) -> list[LedgerEntry]:
    """
    Build LedgerEntry objects from a ledger export payload.

    Accepted shapes:
      [ {entry}, ... ]
      { "entries": [ {entry}, ... ] }   (or "items")

    Each entry needs `id`, `amount` and `category`; account/source fields are optional
    and may be camelCase or snake_case. Ids must be unique within the payload.
    """
    return _build_entries(_select_items(payload))


def ledger_entries_from_csv(text: str) -> list[LedgerEntry]:
    """
    Build LedgerEntry objects from CSV text with a header row.

    Expected columns: id, account_code, account_name, source_system, amount, category
    (camelCase headers are accepted too). Amounts may include thousands separators.
    """
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise LedgerAdapterError("Ledger CSV is missing a header row.")
    return _build_entries(list(reader))


def _select_items(payload: Any) -> Iterable[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        if "entries" in payload:
            return payload.get("entries") or []
        if "items" in payload:
            return payload.get("items") or []
        return []
    raise LedgerAdapterError("Ledger payload must be a list or an object with 'entries'.")


def _build_entries(rows: Iterable[Any]) -> list[LedgerEntry]:
    entries: list[LedgerEntry] = []
    seen: set[str] = set()
    for idx, row in enumerate(rows):
        if not isinstance(row, dict):
            raise LedgerAdapterError(f"Ledger entry #{idx} must be an object.")
        entry = _entry_from_row(row, idx)
        if entry.id in seen:
            raise LedgerAdapterError(f"Duplicate ledger entry id: {entry.id}")
        seen.add(entry.id)
        entries.append(entry)
    return entries


def _entry_from_row(row: dict[str, Any], idx: int) -> LedgerEntry:
    values = {field: _pick(row, aliases) for field, aliases in _FIELD_ALIASES.items()}

    entry_id = values["id"]
    if entry_id in (None, ""):
        raise LedgerAdapterError(f"Ledger entry #{idx} missing required field: id")

    amount = _parse_decimal(values["amount"])
    if amount is None:
        raise LedgerAdapterError(f"Ledger entry {entry_id} has a missing or invalid amount: {values['amount']!r}")

    raw_category = values["category"]
    try:
        category = LedgerCategory(str(raw_category).strip())
    except ValueError as exc:
        raise LedgerAdapterError(f"Ledger entry {entry_id} has an unknown category: {raw_category!r}") from exc

    return LedgerEntry(
        id=str(entry_id),
        account_code=str(values["account_code"] or ""),
        account_name=str(values["account_name"] or ""),
        source_system=_normalize_source_system(values["source_system"]),
        amount=amount,
        category=category,
    )


def _normalize_source_system(value: Any) -> str:
    # Short codes ("GL", "TREASURY") map to their display names; unknown provenance is kept verbatim.
    if value in (None, ""):
        return ""
    text = str(value).strip()
    for member in LedgerSourceSystem:
        if text.upper() == member.name or text.lower() == member.value.lower():
            return member.value
    return text


def _pick(row: dict[str, Any], aliases: tuple[str, ...]) -> Any:
    for key in aliases:
        if key in row:
            return row[key]
    return None


def _parse_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip().replace(",", "")
        if not s:
            return None
        try:
            return Decimal(s)
        except InvalidOperation:
            return None
    return None
