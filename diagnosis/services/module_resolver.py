"""
Per-module percentage resolution.

Builds the (answers, reference) pair for a module by applying the module's
declarative rules, so denominators only hold questions that apply to the path
the user chose, then hands the pair to the leaf counter.
"""
import copy
from typing import Any, Dict, Optional, Tuple

from diagnosis.services.leaf_counter import compute_percentage
from diagnosis.services.module_schema import (
    MODULES,
    RESERVED_KEYS,
    ModuleSchema,
    get_schema,
    is_unset,
)


def strip_reserved(record: Any) -> Dict[str, Any]:
    if not isinstance(record, dict):
        return {}
    return {k: v for k, v in record.items() if k not in RESERVED_KEYS}


def resolve_pair(schema: ModuleSchema, record: Any) -> Optional[Tuple[Dict[str, Any], Dict[str, Any]]]:
    """Pruned (answers, reference), or None when no path is chosen yet.

    None covers both an unset discriminator and a value that matches no
    known branch.
    """
    answers = strip_reserved(record)
    rules = list(schema.rules)

    if schema.discriminator is not None:
        if is_unset(schema.discriminator_value(answers)):
            return None
        branch = schema.branch_for(answers)
        if branch is None:
            return None
        rules.extend(branch.rules)

    data = copy.deepcopy(answers)
    reference = schema.blank()
    # conditions read the untouched answers so rule order never matters
    for rule in rules:
        if rule.applies(answers):
            rule.apply(data, reference)
    return data, reference


def module_percentage(module: str, record: Any) -> int:
    pair = resolve_pair(get_schema(module), record)
    if pair is None:
        return 0
    data, reference = pair
    return compute_percentage(data, reference)


def module_percentages(form_data: Any) -> Dict[str, int]:
    form_data = form_data if isinstance(form_data, dict) else {}
    return {module: module_percentage(module, form_data.get(module)) for module in MODULES}
