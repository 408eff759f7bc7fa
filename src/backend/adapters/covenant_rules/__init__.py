"""Adapters for rule-extractor payloads (camelCase or snake_case) producing CovenantRules."""

from .extraction import CovenantRulesAdapterError, covenant_rules_from_payload

__all__ = [
    "CovenantRulesAdapterError",
    "covenant_rules_from_payload",
]
