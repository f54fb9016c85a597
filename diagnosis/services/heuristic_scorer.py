"""
Legacy server-side progress heuristic.

Each module is worth 25 points. In priority order a module scores the full
share for an explicit completion flag, then for a legacy "looks complete"
rule, and otherwise the larger of its step score and field-density score.
This deliberately diverges from the structural resolver on edge cases.
"""
from typing import Any, Dict, Optional

from diagnosis.services.bookkeeping import ModuleState, split_record
from diagnosis.services.leaf_counter import round_half_up
from diagnosis.services.module_schema import MODULES, RESERVED_KEYS, get_schema

MODULE_SHARE = 25


def _meaningful(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, dict)):
        return len(value) > 0
    if isinstance(value, str):
        return len(value.strip()) > 0
    return isinstance(value, (int, float, bool))


def step_score(module: str, record: Dict[str, Any], step: Optional[int]) -> float:
    if not step:
        return 0.0
    budget = get_schema(module).step_budget(record)
    if budget <= 0:
        return 0.0
    return min(1.0, step / budget) * MODULE_SHARE


def density_score(record: Dict[str, Any]) -> float:
    fields = [key for key in record if key not in RESERVED_KEYS]
    if not fields:
        return 0.0
    filled = sum(1 for key in fields if _meaningful(record[key]))
    return filled / len(fields) * MODULE_SHARE


def is_legacy_complete(module: str, record: Dict[str, Any]) -> bool:
    rule = get_schema(module).legacy_complete
    return rule is not None and rule.holds(record)


def score_module(module: str, record: Any, state: Optional[ModuleState] = None) -> float:
    """Points (0-25) one module contributes.

    Bookkeeping still embedded in a legacy record counts alongside the sidecar.
    """
    state = state or ModuleState()
    record, embedded_completed, embedded_step = split_record(record)
    completed = state.completed or bool(embedded_completed)
    step = state.step if state.step is not None else embedded_step

    if completed:
        return float(MODULE_SHARE)
    if is_legacy_complete(module, record):
        return float(MODULE_SHARE)
    return max(step_score(module, record, step), density_score(record))


def score_progress(form_data: Any, states: Optional[Dict[str, ModuleState]] = None) -> int:
    """Aggregate 0-100 score across all four modules."""
    form_data = form_data if isinstance(form_data, dict) else {}
    states = states or {}
    total = sum(score_module(module, form_data.get(module), states.get(module)) for module in MODULES)
    return min(100, round_half_up(total))
