"""Sequential unlock chain: mentor -> mentee -> method -> delivery -> later sections."""
from typing import Dict, Mapping, Optional

from diagnosis.services.module_schema import MODULES

# Sections after the foundation modules all wait on delivery
DOWNSTREAM_SECTIONS = ("marketing", "sales", "delivery_preparation", "action_plan")
SECTIONS = MODULES + DOWNSTREAM_SECTIONS


class ModuleLockedError(Exception):
    def __init__(self, section: str, predecessor: str):
        self.section = section
        self.predecessor = predecessor
        super().__init__(f"Module {section} is locked until {predecessor} reaches 100%")


def predecessor_of(section: str) -> Optional[str]:
    if section in DOWNSTREAM_SECTIONS:
        return MODULES[-1]
    if section not in MODULES:
        raise ValueError(f"Unknown section: {section}")
    index = MODULES.index(section)
    return MODULES[index - 1] if index > 0 else None


def is_unlocked(section: str, percentages: Mapping[str, int]) -> bool:
    predecessor = predecessor_of(section)
    if predecessor is None:
        return True
    return percentages.get(predecessor, 0) == 100


def unlock_map(percentages: Mapping[str, int]) -> Dict[str, bool]:
    return {section: is_unlocked(section, percentages) for section in SECTIONS}


def ensure_unlocked(section: str, percentages: Mapping[str, int]) -> None:
    """Reject activation of a locked section even when requested directly."""
    if not is_unlocked(section, percentages):
        raise ModuleLockedError(section, predecessor_of(section))
