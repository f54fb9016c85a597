"""
Single progress computation shared by the API and the client library.

The structural resolver is canonical. The legacy heuristic only stands in
for records that do not follow the module schema at all.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from diagnosis.services import heuristic_scorer, module_gate
from diagnosis.services.bookkeeping import ModuleState, hoist_bookkeeping, load_module_state
from diagnosis.services.leaf_counter import round_half_up
from diagnosis.services.module_resolver import module_percentage
from diagnosis.services.module_schema import MODULES, get_schema

SOURCE_COMPLETED = "completed"
SOURCE_STRUCTURAL = "structural"
SOURCE_HEURISTIC = "heuristic"


@dataclass
class ModuleProgress:
    module: str
    percentage: int  # recomputed from current answers
    displayed: int  # never below the stored high-water mark
    completed: bool
    step: Optional[int]
    source: str
    share: int  # what this module adds to the aggregate, 0-100
    unlocked: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percentage": self.percentage,
            "displayed": self.displayed,
            "completed": self.completed,
            "step": self.step,
            "source": self.source,
            "unlocked": self.unlocked,
        }


@dataclass
class ProgressReport:
    modules: Dict[str, ModuleProgress] = field(default_factory=dict)
    aggregate: int = 0
    legacy_score: int = 0

    def percentages(self) -> Dict[str, int]:
        return {name: m.percentage for name, m in self.modules.items()}

    def displayed(self) -> Dict[str, int]:
        return {name: m.displayed for name, m in self.modules.items()}

    def unlocked(self) -> Dict[str, bool]:
        return module_gate.unlock_map(self.percentages())


def conforms_to_schema(module: str, record: Dict[str, Any], state: ModuleState) -> bool:
    """Whether field-level counting is reliable for this record."""
    if not record:
        return state.step is None
    return any(key in get_schema(module).reference for key in record)


def compute_report(
    form_data: Any,
    states: Optional[Dict[str, ModuleState]] = None,
) -> ProgressReport:
    """Per-module percentages, unlock state and aggregate for one account."""
    if states is None:
        states = load_module_state(None)
    form_data, states = hoist_bookkeeping(form_data, states)

    percentages = {module: module_percentage(module, form_data[module]) for module in MODULES}
    unlocked = module_gate.unlock_map(percentages)

    modules = {}
    for module in MODULES:
        record, state, pct = form_data[module], states[module], percentages[module]
        if state.completed:
            source, share = SOURCE_COMPLETED, 100
        elif conforms_to_schema(module, record, state):
            source, share = SOURCE_STRUCTURAL, pct
        else:
            source = SOURCE_HEURISTIC
            share = round_half_up(
                heuristic_scorer.score_module(module, record, state) * 100 / heuristic_scorer.MODULE_SHARE
            )
        modules[module] = ModuleProgress(
            module=module,
            percentage=pct,
            displayed=max(pct, state.high_water),
            completed=state.completed,
            step=state.step,
            source=source,
            share=min(100, share),
            unlocked=unlocked[module],
        )

    aggregate = min(100, round_half_up(sum(m.share for m in modules.values()) / len(MODULES)))
    return ProgressReport(
        modules=modules,
        aggregate=aggregate,
        legacy_score=heuristic_scorer.score_progress(form_data, states),
    )


def raise_high_water(states: Dict[str, ModuleState], report: ProgressReport) -> Dict[str, ModuleState]:
    """States with each module's high-water mark lifted to its current percentage."""
    return {
        module: ModuleState(
            completed=states[module].completed,
            step=states[module].step,
            high_water=max(states[module].high_water, report.modules[module].percentage),
        )
        for module in MODULES
    }
