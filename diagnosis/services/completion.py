"""Detects the account crossing into (and out of) 100% completion."""
from dataclasses import dataclass

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"


@dataclass(frozen=True)
class Transition:
    status: str
    notify: bool = False

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED


def detect_transition(
    previous_status: str,
    percentage: int,
    already_notified: bool = False,
    renotify: bool = False,
) -> Transition:
    """
    Next status for an account and whether to emit the completion signal.

    Args:
        previous_status: status stored before this save
        percentage: freshly recomputed aggregate percentage
        already_notified: a completion signal was emitted for this account before
        renotify: emit again when an account returns to 100% after reverting

    Returns:
        Transition: new status, notify flag
    """
    if percentage >= 100 and previous_status != STATUS_COMPLETED:
        return Transition(STATUS_COMPLETED, notify=renotify or not already_notified)
    if percentage < 100 and previous_status == STATUS_COMPLETED:
        return Transition(STATUS_IN_PROGRESS)
    if previous_status not in (STATUS_IN_PROGRESS, STATUS_COMPLETED):
        return Transition(STATUS_IN_PROGRESS)
    return Transition(previous_status)
