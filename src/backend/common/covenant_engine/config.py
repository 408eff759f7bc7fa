from __future__ import annotations

import os
from decimal import Decimal, InvalidOperation
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel


class EngineDefaults(BaseModel):
    """Fallback values used when the extracted covenant rules are silent."""

    leverage_max: Decimal = Decimal("4.0")
    interest_min: Decimal = Decimal("0")
    # Springing trigger fires when RCF utilization is strictly above this fraction.
    trigger_threshold: Decimal = Decimal("0.40")
    # Percentage applied when a cap is mentioned but no "N%" can be read from it.
    cap_percentage: int = 20
    leverage_warning_factor: Decimal = Decimal("0.9")
    interest_warning_factor: Decimal = Decimal("1.1")
    starting_point_label: str = "Operating Profit"
    trigger_metric_name: str = "RCF Drawings / Total RCF Commitments"


def load_engine_defaults(env_file: Optional[str] = None) -> EngineDefaults:
    """
    Build EngineDefaults from environment variables (optionally a .env file).

    Reads:
      COVENANT_DEFAULT_LEVERAGE_MAX, COVENANT_DEFAULT_INTEREST_MIN,
      COVENANT_DEFAULT_TRIGGER_THRESHOLD, COVENANT_DEFAULT_CAP_PERCENTAGE
    Unset variables keep the built-in defaults.
    """
    load_dotenv(env_file)
    overrides = {}
    for field_name, env_name in (
        ("leverage_max", "COVENANT_DEFAULT_LEVERAGE_MAX"),
        ("interest_min", "COVENANT_DEFAULT_INTEREST_MIN"),
        ("trigger_threshold", "COVENANT_DEFAULT_TRIGGER_THRESHOLD"),
    ):
        value = _optional_decimal_env(env_name)
        if value is not None:
            overrides[field_name] = value

    cap_pct = _optional_decimal_env("COVENANT_DEFAULT_CAP_PERCENTAGE")
    if cap_pct is not None:
        overrides["cap_percentage"] = int(cap_pct)
    return EngineDefaults(**overrides)


def _optional_decimal_env(name: str) -> Optional[Decimal]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise ValueError(f"Environment variable {name} must be a number, got {raw!r}.") from exc
