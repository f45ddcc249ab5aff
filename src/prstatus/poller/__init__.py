from prstatus.poller.scheduler import PollScheduler, create_scheduler
from prstatus.poller.settings import Preferences
from prstatus.poller.types import (
    ErrorKind,
    PollState,
    SchedulerPhase,
    ViewModel,
    ViewStatus,
)

__all__ = [
    "PollScheduler",
    "create_scheduler",
    "Preferences",
    "ErrorKind",
    "PollState",
    "SchedulerPhase",
    "ViewModel",
    "ViewStatus",
]
