from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import pydantic

from prstatus.model import CategoryBuckets, Model


class SchedulerPhase(str, Enum):
    idle = "idle"
    scheduled = "scheduled"
    refreshing = "refreshing"


class ViewStatus(str, Enum):
    loading = "loading"
    error = "error"
    unconfigured = "unconfigured"
    populated = "populated"


class ErrorKind(str, Enum):
    transport = "transport"
    graphql = "graphql"
    auth = "auth"
    secret_store = "secret_store"


@dataclass(frozen=True)
class ErrorInfo:
    kind: ErrorKind
    message: str


@dataclass
class PollState:
    buckets: CategoryBuckets | None = None
    notification_count: int = 0
    status: ViewStatus = ViewStatus.loading
    error: ErrorInfo | None = None
    last_refreshed_at: datetime | None = None

    def view(self) -> "ViewModel":
        return ViewModel(
            status=self.status,
            message=self.error.message if self.error is not None else None,
            error_kind=self.error.kind if self.error is not None else None,
            buckets=self.buckets,
            badge_count=self.notification_count,
            refreshed_at=self.last_refreshed_at,
        )


class ViewModel(Model):
    status: ViewStatus
    message: str | None = None
    error_kind: ErrorKind | None = None
    buckets: CategoryBuckets | None = None
    badge_count: int = pydantic.Field(0, ge=0)
    refreshed_at: datetime | None = None

    @property
    def badge_visible(self) -> bool:
        return self.badge_count > 0

    @property
    def badge_text(self) -> str:
        if not self.badge_visible:
            return ""
        return "99+" if self.badge_count > 99 else str(self.badge_count)
