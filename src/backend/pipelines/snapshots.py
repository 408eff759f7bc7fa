from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from common.covenant_engine.models import CovenantRunReport


REPORT_SNAPSHOT_NAME = "covenant_review"

_UNSAFE_SEGMENT_RE = re.compile(r"[^A-Za-z0-9._-]+")


def snapshot_segment(label: str) -> str:
    """Turn a deal id or period label ("Q4 2025", "2025/12") into a single path segment."""
    cleaned = _UNSAFE_SEGMENT_RE.sub("-", label.strip()).strip("-.")
    if not cleaned:
        raise ValueError(f"Snapshot label {label!r} has no usable characters.")
    return cleaned


@dataclass(frozen=True)
class LocalSnapshotStore:
    """Run reports on disk, laid out as <root>/<deal_id>/<period>/<name>.json."""

    root_dir: Path

    def _path(self, deal_id: str, period: str, name: str) -> Path:
        return self.root_dir / snapshot_segment(deal_id) / snapshot_segment(period) / f"{name}.json"

    def save_json(self, *, deal_id: str, period: str, name: str, payload: dict[str, Any]) -> Path:
        out_path = self._path(deal_id, period, name)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return out_path

    def save_report(self, report: CovenantRunReport, *, deal_id: str) -> Path:
        return self.save_json(
            deal_id=deal_id,
            period=report.period,
            name=REPORT_SNAPSHOT_NAME,
            payload=report.model_dump(mode="json"),
        )

    def load_report(self, *, deal_id: str, period: str) -> CovenantRunReport | None:
        path = self._path(deal_id, period, REPORT_SNAPSHOT_NAME)
        if not path.exists():
            return None
        return CovenantRunReport.model_validate_json(path.read_text(encoding="utf-8"))

    def list_periods(self, *, deal_id: str) -> list[str]:
        deal_dir = self.root_dir / snapshot_segment(deal_id)
        if not deal_dir.is_dir():
            return []
        return sorted(
            p.name for p in deal_dir.iterdir() if (p / f"{REPORT_SNAPSHOT_NAME}.json").exists()
        )


def default_local_snapshot_store() -> LocalSnapshotStore:
    root = Path(__file__).resolve().parents[3] / "data" / "snapshots"
    return LocalSnapshotStore(root_dir=root)
