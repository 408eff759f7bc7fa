from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional


def _ensure_backend_on_path() -> None:
    backend_dir = Path(__file__).resolve().parents[1]
    if str(backend_dir) not in sys.path:
        sys.path.insert(0, str(backend_dir))


_ensure_backend_on_path()

from adapters.covenant_rules import covenant_rules_from_payload  # noqa: E402
from adapters.ledger import ledger_entries_from_csv, ledger_entries_from_payload  # noqa: E402
from common.covenant_engine.certificate import (  # noqa: E402
    ComplianceCertificateData,
    build_certificate_data,
    format_currency,
    format_ratio,
)
from common.covenant_engine.config import load_engine_defaults  # noqa: E402
from common.covenant_engine.models import (  # noqa: E402
    BridgeSection,
    CovenantRules,
    CovenantRunReport,
    LedgerEntry,
)
from common.covenant_engine.runner import CovenantRunner  # noqa: E402
from pipelines.snapshots import LocalSnapshotStore, default_local_snapshot_store, snapshot_segment  # noqa: E402

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CovenantReviewInputs:
    entries: list[LedgerEntry]
    rules: CovenantRules


def _load_json(path: Path):
    with path.open(encoding="utf-8") as handle:
        return json.load(handle)


def build_fixture_review_inputs(fixtures_dir: Path) -> CovenantReviewInputs:
    ledger_json = fixtures_dir / "ledger.json"
    ledger_csv = fixtures_dir / "ledger.csv"
    rules_path = fixtures_dir / "covenant_rules.json"

    if ledger_json.exists():
        entries = ledger_entries_from_payload(_load_json(ledger_json))
    elif ledger_csv.exists():
        entries = ledger_entries_from_csv(ledger_csv.read_text(encoding="utf-8"))
    else:
        raise SystemExit(f"No ledger.json or ledger.csv found in {fixtures_dir}.")

    if not rules_path.exists():
        raise SystemExit(f"No covenant_rules.json found in {fixtures_dir}.")
    rules = covenant_rules_from_payload(rules_path.read_text(encoding="utf-8"))
    return CovenantReviewInputs(entries=entries, rules=rules)


def run_covenant_review_from_inputs(
    inputs: CovenantReviewInputs, *, period: str, runner: Optional[CovenantRunner] = None
) -> CovenantRunReport:
    runner = runner or CovenantRunner(load_engine_defaults())
    return runner.run(inputs.entries, inputs.rules, period=period)


def _write_markdown(report: CovenantRunReport, currency: str, out_path: Path) -> None:
    result = report.result
    headroom = result.headroom
    lines = [
        f"# Covenant Review {report.period}",
        "",
        f"Generated at: {report.generated_at.isoformat()}",
        "",
        f"**Status:** {headroom.status.value}",
        "",
        "## Ratios",
        "",
        "| Ratio | Actual | Threshold | Headroom |",
        "| --- | --- | --- | --- |",
        f"| Leverage | {format_ratio(headroom.leverage_ratio)} | {format_ratio(headroom.leverage_threshold)} "
        f"| {headroom.leverage_headroom:.2f} |",
        f"| Interest Cover | {format_ratio(headroom.interest_coverage_ratio)} "
        f"| {format_ratio(headroom.interest_threshold)} | {headroom.interest_headroom:.2f} |",
        "",
    ]
    if headroom.trigger_details is not None:
        details = headroom.trigger_details
        lines += [
            "## Springing Test",
            "",
            f"- Metric: {details.metric_name}",
            f"- Utilization: {details.current_value * 100:.1f}% (threshold {details.threshold * 100:.1f}%)",
            f"- Capacity: {format_currency(details.capacity, currency)}",
            f"- Test condition active: {'yes' if headroom.test_condition_active else 'no'}",
            "",
        ]

    titles = {
        BridgeSection.EBITDA: "EBITDA Bridge",
        BridgeSection.FINANCE_CHARGES: "Net Finance Charges",
        BridgeSection.NET_DEBT: "Net Debt Bridge",
    }
    for section, title in titles.items():
        lines += [f"## {title}", "", "| Item | Raw | Final | Note |", "| --- | --- | --- | --- |"]
        for line in result.lines_for(section):
            note = line.adjustment_reason or ""
            lines.append(
                f"| {line.label} | {format_currency(line.raw_amount, currency)} "
                f"| {format_currency(line.final_amount, currency)} | {note} |"
            )
        lines.append("")

    tracked = [r for r in report.recommendations if r.is_tracked]
    if tracked:
        lines += ["## Tracked Recommendations", ""]
        for rec in tracked:
            state = "met" if rec.is_met else "not met"
            lines.append(
                f"- {rec.title}: {rec.condition_metric} {rec.condition_operator} "
                f"{rec.condition_threshold} (current {rec.current_value:.2f}, {state})"
            )
        lines.append("")

    out_path.write_text("\n".join(lines), encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Run a covenant reconciliation against a fixtures directory and write JSON/MD outputs."
    )
    parser.add_argument(
        "--fixtures-dir",
        required=True,
        help="Directory containing ledger.json (or ledger.csv) and covenant_rules.json.",
    )
    parser.add_argument(
        "--output-dir",
        default=None,
        help="Output directory for review files (defaults to fixtures dir).",
    )
    parser.add_argument(
        "--period",
        default=None,
        help="Relevant period label, e.g. 2025-12-31 (defaults to today).",
    )
    parser.add_argument(
        "--deal-id",
        default=None,
        help="Also store the run report in the local snapshot store under this deal id.",
    )
    parser.add_argument(
        "--snapshot-dir",
        default=None,
        help="Root directory for the local snapshot store (requires --deal-id).",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO).")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    fixtures_dir = Path(args.fixtures_dir).resolve()
    output_dir = Path(args.output_dir).resolve() if args.output_dir else fixtures_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    period = args.period or date.today().isoformat()

    inputs = build_fixture_review_inputs(fixtures_dir)
    report = run_covenant_review_from_inputs(inputs, period=period)
    currency = inputs.rules.deal_metadata.base_currency

    certificate: ComplianceCertificateData = build_certificate_data(
        report.result,
        inputs.rules,
        period=period,
        issued_on=report.generated_at.date(),
    )

    base_name = f"covenant_review_{snapshot_segment(period)}"
    out_json = output_dir / f"{base_name}.json"
    out_md = output_dir / f"{base_name}.md"
    out_certificate = output_dir / f"{base_name}_certificate.json"

    report_payload = report.model_dump(mode="json")
    out_json.write_text(json.dumps(report_payload, indent=2), encoding="utf-8")
    _write_markdown(report, currency, out_md)
    out_certificate.write_text(
        json.dumps(certificate.model_dump(mode="json", by_alias=True), indent=2), encoding="utf-8"
    )

    if args.deal_id:
        if args.snapshot_dir:
            store = LocalSnapshotStore(root_dir=Path(args.snapshot_dir).resolve())
        else:
            store = default_local_snapshot_store()
        saved = store.save_report(report, deal_id=args.deal_id)
        logger.info("Stored run report snapshot at %s", saved)

    logger.info("Covenant status for %s: %s", period, report.result.headroom.status.value)
    print(f"Wrote {out_json}")
    print(f"Wrote {out_md}")
    print(f"Wrote {out_certificate}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
