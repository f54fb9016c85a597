"""
Schema descriptors for the four diagnostic modules.

Each module is described by a blank reference shape (the denominator for
completion counting) plus declarative pruning rules. A rule names a dotted
path and, optionally, the condition on the user's own answers under which it
applies. The resolver consumes these generically; no module gets hand-written
branching.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

MODULES = ("mentor", "mentee", "method", "delivery")

# Bookkeeping keys older clients injected into answer records
COMPLETED_KEY = "_completed"
CURRENT_STEP_KEY = "_currentStep"
RESERVED_KEYS = (COMPLETED_KEY, CURRENT_STEP_KEY)

OTHER_ENGAGEMENT_OPTION = "OUTRO: Descreva"

MISSING = object()


def get_path(data: Any, path: str) -> Any:
    """Value at a dotted path, or MISSING when any segment is absent."""
    current = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return MISSING
        current = current[part]
    return current


def _parent(data: Any, path: str) -> Tuple[Optional[dict], str]:
    *parents, leaf = path.split(".")
    current = data
    for part in parents:
        if not isinstance(current, dict):
            return None, leaf
        current = current.get(part)
    return (current if isinstance(current, dict) else None), leaf


def remove_path(data: Any, path: str) -> None:
    parent, leaf = _parent(data, path)
    if parent is not None:
        parent.pop(leaf, None)


def set_path(data: Any, path: str, value: Any) -> None:
    parent, leaf = _parent(data, path)
    if parent is not None:
        parent[leaf] = value


def is_unset(value: Any) -> bool:
    return value is MISSING or value is None or value == ""


# ---------------------------------------------------------------------------
# Conditions over a module's answers
# ---------------------------------------------------------------------------

class Condition:
    def holds(self, data: Any) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class Equals(Condition):
    path: str
    value: Any

    def holds(self, data):
        current = get_path(data, self.path)
        return current is not MISSING and current == self.value


@dataclass(frozen=True)
class Truthy(Condition):
    path: str

    def holds(self, data):
        current = get_path(data, self.path)
        return current is not MISSING and bool(current)


@dataclass(frozen=True)
class Contains(Condition):
    path: str
    value: Any

    def holds(self, data):
        current = get_path(data, self.path)
        return isinstance(current, list) and self.value in current


@dataclass(frozen=True)
class NonEmpty(Condition):
    path: str

    def holds(self, data):
        current = get_path(data, self.path)
        return isinstance(current, (list, dict, str)) and len(current) > 0


@dataclass(frozen=True)
class LongerThan(Condition):
    path: str
    length: int

    def holds(self, data):
        current = get_path(data, self.path)
        return isinstance(current, (list, str)) and len(current) > self.length


@dataclass(frozen=True)
class Not(Condition):
    condition: Condition

    def holds(self, data):
        return not self.condition.holds(data)


@dataclass(frozen=True)
class AnyOf(Condition):
    conditions: Tuple[Condition, ...]

    def holds(self, data):
        return any(c.holds(data) for c in self.conditions)


@dataclass(frozen=True)
class AllOf(Condition):
    conditions: Tuple[Condition, ...]

    def holds(self, data):
        return all(c.holds(data) for c in self.conditions)


# ---------------------------------------------------------------------------
# Pruning rules
# ---------------------------------------------------------------------------

class Rule:
    when: Optional[Condition] = None

    def applies(self, data: Any) -> bool:
        return self.when is None or self.when.holds(data)

    def apply(self, data: dict, reference: dict) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class Exclude(Rule):
    """Drop a field from both the answers and the reference."""
    path: str
    when: Optional[Condition] = None

    def apply(self, data, reference):
        remove_path(data, self.path)
        remove_path(reference, self.path)


@dataclass(frozen=True)
class StripItemFields(Rule):
    """Drop non-answer keys (ids, optional sub-lists) from every record in a list."""
    path: str
    fields: Tuple[str, ...]
    when: Optional[Condition] = None

    def _strip(self, tree):
        items = get_path(tree, self.path)
        if not isinstance(items, list):
            return
        cleaned = [
            {k: v for k, v in item.items() if k not in self.fields} if isinstance(item, dict) else item
            for item in items
        ]
        set_path(tree, self.path, cleaned)

    def apply(self, data, reference):
        self._strip(data)
        self._strip(reference)


@dataclass(frozen=True)
class OverrideReference(Rule):
    """Replace the blank value in the reference only."""
    path: str
    value: Any
    when: Optional[Condition] = None

    def apply(self, data, reference):
        set_path(reference, self.path, _copy_value(self.value))


def _copy_value(value):
    if isinstance(value, dict):
        return {k: _copy_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy_value(v) for v in value]
    return value


@dataclass(frozen=True)
class Branch:
    rules: Tuple[Rule, ...] = ()
    max_steps: Optional[int] = None


@dataclass(frozen=True)
class ModuleSchema:
    name: str
    reference: Dict[str, Any]
    max_steps: int
    rules: Tuple[Rule, ...] = ()
    discriminator: Optional[str] = None
    branches: Dict[str, Branch] = field(default_factory=dict)
    legacy_complete: Optional[Condition] = None
    default_branch: Optional[Branch] = None  # any other non-blank discriminator value

    def discriminator_value(self, data: Any) -> Any:
        if self.discriminator is None:
            return MISSING
        return get_path(data, self.discriminator)

    def branch_for(self, data: Any) -> Optional[Branch]:
        value = self.discriminator_value(data)
        if not isinstance(value, str):
            return None
        if value in self.branches:
            return self.branches[value]
        return self.default_branch if value.strip() else None

    def step_budget(self, data: Any) -> int:
        branch = self.branch_for(data)
        if branch is not None and branch.max_steps is not None:
            return branch.max_steps
        return self.max_steps

    def blank(self) -> Dict[str, Any]:
        return _copy_value(self.reference)


# ---------------------------------------------------------------------------
# Reference shapes
# ---------------------------------------------------------------------------

INITIAL_MENTOR_DATA = {
    "step1": {"fullName": "", "professionalTitle": "", "yearsOfExperience": 0},
    "step2": {"originStory": "", "turningPoint": ""},
    "step3": {"expertiseAreas": [], "credentials": ""},
    "step4": {"biggestResult": "", "achievements": ""},
    "step5": {"values": [], "mission": ""},
    "step6": {"testimonials": [], "hasNoTestimonials": False},
    "step7": {"myDifference": "", "marketStandard": ""},
}

EMPTY_EMPATHY_MAP = {
    "whoIs": "",
    "feelings": "",
    "saysDoes": "",
    "sees": "",
    "hears": "",
    "thinks": "",
    "weaknesses": "",
    "gains": "",
}

INITIAL_MENTEE_DATA = {
    "hasClients": "",
    "demographics": {
        "ageRange": {"min": 25, "max": 45},
        "gender": "",
        "location": "",
        "education": "",
        "income": "",
        "role": {"title": "", "area": ""},
        "digitalPresence": {"platforms": [], "hoursPerDay": 2, "behavior": ""},
    },
    "transformation": {"currentState": "", "desiredState": ""},
    "decisionMountain": {"pains": "", "objections": "", "triggers": ""},
    "consumptionJourney": {"steps": []},
    "icpTarget": {"description": ""},
    "personas": [],
    "fanHaterMap": None,
    "communityImpact": {
        "community": {"definition": "", "belonging": "", "rituals": ""},
        "impact": {"definition": "", "results": "", "legacy": ""},
    },
    "icpSynthesis": {"phrase": ""},
}

INITIAL_METHOD_DATA = {
    "stage": "",
    "name": "",
    "transformation": "",
    "pillars": [{"id": str(i), "title": "", "description": ""} for i in range(1, 4)],
    "purpose": "",
    "journeyMap": [
        {"id": str(i), "phase": "", "description": "", "problems": [], "solutions": []}
        for i in range(1, 4)
    ],
}

INITIAL_DELIVERY_DATA = {
    "format": {"duration": "", "modality": ""},
    "mandatory": {
        "onlineEngagement": [],
        "otherEngagementText": "",
        "meetingFormat": "",
        "frequency": "",
    },
    "overdelivery": {
        "hasIndividual": "",
        "individualDetails": "",
        "frequency": "",
        "accelerators": [{"id": "1", "name": "", "description": ""}],
    },
}


# ---------------------------------------------------------------------------
# Module descriptors
# ---------------------------------------------------------------------------

MENTOR_SCHEMA = ModuleSchema(
    name="mentor",
    reference=INITIAL_MENTOR_DATA,
    max_steps=7,
    rules=(
        Exclude("step6.testimonials", when=Truthy("step6.hasNoTestimonials")),
        Exclude("step6.hasNoTestimonials"),
    ),
    legacy_complete=AnyOf((
        Truthy("step7.myDifference"),
        Truthy("step7.marketStandard"),
        NonEmpty("step6.testimonials"),
        Truthy("step6.hasNoTestimonials"),
    )),
)

_NO_CLIENTS = Branch(
    max_steps=6,
    rules=(
        Exclude("personas"),
        Exclude("fanHaterMap"),
        Exclude("communityImpact"),
        Exclude("icpSynthesis"),
        Exclude("demographics.digitalPresence.behavior"),
        Exclude("demographics.role.area"),
        # defaults the user confirms still count as answers
        OverrideReference("demographics.ageRange", {"min": -1, "max": -1}),
        OverrideReference("demographics.digitalPresence.hoursPerDay", -1),
    ),
)

_HAS_CLIENTS = Branch(
    max_steps=5,
    rules=(
        Exclude("demographics"),
        Exclude("transformation"),
        Exclude("decisionMountain"),
        Exclude("consumptionJourney"),
        Exclude("icpTarget"),
        Exclude("personas"),
        Exclude("communityImpact.community.definition"),
        Exclude("communityImpact.impact.definition"),
        OverrideReference("fanHaterMap", {"fan": EMPTY_EMPATHY_MAP, "hater": EMPTY_EMPATHY_MAP}),
    ),
)

MENTEE_SCHEMA = ModuleSchema(
    name="mentee",
    reference=INITIAL_MENTEE_DATA,
    max_steps=5,
    discriminator="hasClients",
    rules=(Exclude("hasClients"),),
    branches={"no": _NO_CLIENTS, "yes": _HAS_CLIENTS},
    legacy_complete=AnyOf((
        LongerThan("icpSynthesis.phrase", 3),
        NonEmpty("consumptionJourney.steps"),
    )),
)

_STRUCTURED = Branch(
    max_steps=2,
    rules=(
        Exclude("purpose"),
        Exclude("journeyMap"),
        StripItemFields("pillars", ("id",)),
    ),
)

_UNSTRUCTURED = Branch(
    max_steps=4,
    rules=(
        Exclude("name"),
        Exclude("transformation"),
        Exclude("pillars"),
        StripItemFields("journeyMap", ("id", "problems", "solutions")),
    ),
)

METHOD_SCHEMA = ModuleSchema(
    name="method",
    reference=INITIAL_METHOD_DATA,
    max_steps=4,
    discriminator="stage",
    branches={"structured": _STRUCTURED},
    default_branch=_UNSTRUCTURED,
    legacy_complete=AnyOf((
        NonEmpty("pillars"),
        NonEmpty("journeyMap"),
        AllOf((Truthy("name"), Truthy("transformation"))),
    )),
)

DELIVERY_SCHEMA = ModuleSchema(
    name="delivery",
    reference=INITIAL_DELIVERY_DATA,
    max_steps=3,
    rules=(
        Exclude(
            "mandatory.otherEngagementText",
            when=Not(Contains("mandatory.onlineEngagement", OTHER_ENGAGEMENT_OPTION)),
        ),
        StripItemFields("overdelivery.accelerators", ("id",)),
        Exclude("overdelivery.individualDetails", when=Equals("overdelivery.hasIndividual", "no")),
        Exclude("overdelivery.frequency", when=Equals("overdelivery.hasIndividual", "no")),
    ),
    legacy_complete=Truthy("mandatory.frequency"),
)

SCHEMAS: Dict[str, ModuleSchema] = {
    schema.name: schema
    for schema in (MENTOR_SCHEMA, MENTEE_SCHEMA, METHOD_SCHEMA, DELIVERY_SCHEMA)
}


def get_schema(module: str) -> ModuleSchema:
    try:
        return SCHEMAS[module]
    except KeyError:
        raise ValueError(f"Unknown module: {module}") from None
