from __future__ import annotations

import logging
from typing import Callable, FrozenSet, Iterable, List

from prstatus import config
from prstatus.model import NotificationReason

logger = logging.getLogger("prstatus")

IntervalCallback = Callable[[int], None]
FilterCallback = Callable[[FrozenSet[NotificationReason]], None]


def parse_reasons(reasons: Iterable[NotificationReason | str]) -> FrozenSet[NotificationReason]:
    parsed = set()
    for reason in reasons:
        try:
            parsed.add(NotificationReason(reason))
        except ValueError:
            valid = ", ".join(r.value for r in NotificationReason)
            raise ValueError(
                f"Unknown notification reason {reason!r}, expected one of {valid}"
            )
    return frozenset(parsed)


def check_interval(value: int) -> int:
    value = int(value)
    if value <= 0:
        raise ValueError(f"Poll interval must be positive, got {value}")
    return value


class Preferences:
    """
    Runtime settings with change notification.

    The hosting application feeds its own configuration source into the
    setters; registered observers run synchronously on every actual change.
    """

    def __init__(
        self,
        interval_seconds: int = config.POLL_INTERVAL,
        notification_filters: Iterable[NotificationReason | str] = (),
    ):
        self._interval_seconds = check_interval(interval_seconds)
        self._notification_filters = parse_reasons(notification_filters)
        self._interval_callbacks: List[IntervalCallback] = []
        self._filter_callbacks: List[FilterCallback] = []

    @classmethod
    def from_config(cls) -> "Preferences":
        return cls(
            interval_seconds=config.POLL_INTERVAL,
            notification_filters=config.NOTIFICATION_FILTERS,
        )

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    @interval_seconds.setter
    def interval_seconds(self, value: int) -> None:
        value = check_interval(value)
        if value == self._interval_seconds:
            return
        logger.info("Poll interval changed %ds -> %ds", self._interval_seconds, value)
        self._interval_seconds = value
        for callback in list(self._interval_callbacks):
            callback(value)

    @property
    def notification_filters(self) -> FrozenSet[NotificationReason]:
        return self._notification_filters

    @notification_filters.setter
    def notification_filters(self, value: Iterable[NotificationReason | str]) -> None:
        filters = parse_reasons(value)
        if filters == self._notification_filters:
            return
        logger.info(
            "Notification filters changed to %s",
            sorted(r.value for r in filters) or "all",
        )
        self._notification_filters = filters
        for callback in list(self._filter_callbacks):
            callback(filters)

    def on_interval_changed(self, callback: IntervalCallback) -> Callable[[], None]:
        self._interval_callbacks.append(callback)
        return lambda: self._remove(self._interval_callbacks, callback)

    def on_filter_changed(self, callback: FilterCallback) -> Callable[[], None]:
        self._filter_callbacks.append(callback)
        return lambda: self._remove(self._filter_callbacks, callback)

    @staticmethod
    def _remove(callbacks: list, callback) -> None:
        if callback in callbacks:
            callbacks.remove(callback)
