"""
Sidecar state kept next to the answers, one entry per module.

Completion flags, wizard step markers and high-water marks live here instead
of inside the answer records. Legacy records that still embed ``_completed``
or ``_currentStep`` are split on the way in.
"""
import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple

from diagnosis.services.module_schema import COMPLETED_KEY, CURRENT_STEP_KEY, MODULES


@dataclass
class ModuleState:
    completed: bool = False
    step: Optional[int] = None
    high_water: int = 0

    @classmethod
    def from_dict(cls, raw: Any) -> "ModuleState":
        if not isinstance(raw, dict):
            return cls()
        return cls(
            completed=bool(raw.get("completed", False)),
            step=_as_step(raw.get("step")),
            high_water=_as_percentage(raw.get("high_water", 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _as_step(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return int(value)


def _as_percentage(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if not math.isfinite(value):
        return 0
    return max(0, min(100, int(value)))


def empty_form_data() -> Dict[str, dict]:
    return {module: {} for module in MODULES}


def load_module_state(raw: Any) -> Dict[str, ModuleState]:
    raw = raw if isinstance(raw, dict) else {}
    return {module: ModuleState.from_dict(raw.get(module)) for module in MODULES}


def dump_module_state(states: Dict[str, ModuleState]) -> Dict[str, Dict[str, Any]]:
    return {module: states[module].to_dict() for module in MODULES if module in states}


def split_record(record: Any) -> Tuple[Dict[str, Any], Optional[bool], Optional[int]]:
    """Answers without bookkeeping keys, plus the embedded flag and step if any."""
    if not isinstance(record, dict):
        return {}, None, None
    answers = {k: v for k, v in record.items() if k not in (COMPLETED_KEY, CURRENT_STEP_KEY)}
    completed = bool(record[COMPLETED_KEY]) if COMPLETED_KEY in record else None
    step = _as_step(record.get(CURRENT_STEP_KEY)) if CURRENT_STEP_KEY in record else None
    return answers, completed, step


def hoist_bookkeeping(
    form_data: Any,
    states: Dict[str, ModuleState],
) -> Tuple[Dict[str, dict], Dict[str, ModuleState]]:
    """Normalize form data to the four modules and move embedded keys into the sidecar."""
    form_data = form_data if isinstance(form_data, dict) else {}
    clean = empty_form_data()
    hoisted = {module: ModuleState(**states[module].to_dict()) for module in MODULES}

    for module in MODULES:
        answers, completed, step = split_record(form_data.get(module))
        clean[module] = answers
        if completed:
            hoisted[module].completed = True
        if step is not None:
            hoisted[module].step = step
    return clean, hoisted
