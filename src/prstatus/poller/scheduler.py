from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import inspect
import logging
from typing import Awaitable, Callable, FrozenSet, List, Optional, Union

from prstatus.exceptions import AuthError, FetchError, SecretStoreError
from prstatus.github import PullRequestResult
from prstatus.github.api import GitHubClient
from prstatus.metric import (
    observe_view,
    record_fetch_error,
    refresh_counter,
    refresh_seconds,
)
from prstatus.model import UNCHANGED, NotificationReason
from prstatus.poller.settings import Preferences, check_interval
from prstatus.poller.types import (
    ErrorInfo,
    ErrorKind,
    PollState,
    SchedulerPhase,
    ViewModel,
    ViewStatus,
)
from prstatus.token_store import EnvTokenStore, TokenStore

logger = logging.getLogger("prstatus")

Listener = Callable[[ViewModel], Union[None, Awaitable[None]]]


class PollScheduler:
    """
    Owns the poll timer and the cached view of the user's pull requests.

    All mutation happens on the event loop. A refresh cycle suspends on the
    token lookup and on each of the two fetches; after every suspension it
    checks the generation counter so that results arriving after :meth:`stop`
    are dropped.
    """

    def __init__(
        self,
        *,
        client: GitHubClient,
        token_store: TokenStore,
        preferences: Optional[Preferences] = None,
    ):
        self.client = client
        self.token_store = token_store
        self.preferences = preferences or Preferences.from_config()
        self.state = PollState()
        self.interval_seconds = self.preferences.interval_seconds
        self._timer: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._generation = 0
        self._stopped = False
        self._listeners: List[Listener] = []
        self._disconnect = [
            self.preferences.on_interval_changed(self._on_interval_changed),
            self.preferences.on_filter_changed(self._on_filter_changed),
        ]

    @property
    def view(self) -> ViewModel:
        return self.state.view()

    @property
    def phase(self) -> SchedulerPhase:
        if self._refresh_in_flight():
            return SchedulerPhase.refreshing
        if self._timer is not None and not self._timer.done():
            return SchedulerPhase.scheduled
        return SchedulerPhase.idle

    @property
    def last_modified(self) -> Optional[str]:
        return self.client.last_modified

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self, interval_seconds: Optional[int] = None) -> None:
        if self._stopped:
            raise RuntimeError("Poller has been stopped")
        interval = check_interval(
            self.interval_seconds if interval_seconds is None else interval_seconds
        )
        self._cancel_timer()
        self.interval_seconds = interval
        logger.info("Polling every %d seconds", interval)
        self._timer = asyncio.create_task(self._run_timer(interval))

    def restart(self, interval_seconds: int) -> None:
        interval_seconds = check_interval(interval_seconds)
        if self._timer is None or self._timer.done():
            self.interval_seconds = interval_seconds
            return
        self.start(interval_seconds)

    async def activate(self) -> ViewModel:
        """Arm the timer and run the first refresh right away."""
        self.start()
        return await self.refresh()

    async def refresh(self) -> ViewModel:
        if self._stopped:
            logger.debug("Poller stopped, not refreshing")
            return self.view
        if not self._refresh_in_flight():
            self._spawn_refresh()
        else:
            logger.debug("Joining refresh already in flight")
        assert self._refresh_task is not None
        return await asyncio.shield(self._refresh_task)

    async def stop(self) -> None:
        self._stopped = True
        self._generation += 1
        for disconnect in self._disconnect:
            disconnect()
        self._disconnect = []

        tasks = [t for t in (self._timer, self._refresh_task) if t is not None]
        self._timer = None
        self._refresh_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        await self.client.close()
        logger.info("Poller stopped")

    def _on_interval_changed(self, interval_seconds: int) -> None:
        self.restart(interval_seconds)

    def _on_filter_changed(self, filters: FrozenSet[NotificationReason]) -> None:
        logger.debug("Notification filter change applies from the next poll")

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _refresh_in_flight(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    async def _run_timer(self, interval: int) -> None:
        while True:
            await asyncio.sleep(interval)
            if self._refresh_in_flight():
                logger.info("Previous refresh still running, skipping tick")
                continue
            self._spawn_refresh()

    def _spawn_refresh(self) -> asyncio.Task:
        task = asyncio.create_task(self._refresh(self._generation))
        task.add_done_callback(self._log_task_failure)
        self._refresh_task = task
        return task

    @staticmethod
    def _log_task_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Refresh cycle crashed", exc_info=exc)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _refresh(self, generation: int) -> ViewModel:
        with refresh_seconds.time():
            return await self._refresh_cycle(generation)

    async def _refresh_cycle(self, generation: int) -> ViewModel:
        try:
            token = await self.token_store.lookup()
        except SecretStoreError as e:
            logger.error("Failed to read token: %s", e)
            if not self._is_current(generation):
                return self.view
            self.state.status = ViewStatus.error
            self.state.error = ErrorInfo(
                ErrorKind.secret_store, "Failed to read token from secret store"
            )
            refresh_counter.labels(result="secret_store_error").inc()
            return await self._publish()

        if not self._is_current(generation):
            return self.view

        if not token:
            logger.info("No token configured, skipping fetch")
            self.state.status = ViewStatus.unconfigured
            self.state.error = None
            self.state.notification_count = 0
            refresh_counter.labels(result="unconfigured").inc()
            return await self._publish()

        pr_ok = await self._refresh_pull_requests(token, generation)
        if not self._is_current(generation):
            return self.view
        await self._publish()

        await self._refresh_notifications(token, generation)
        if not self._is_current(generation):
            return self.view

        refresh_counter.labels(result="ok" if pr_ok else "error").inc()
        return await self._publish()

    async def _refresh_pull_requests(self, token: str, generation: int) -> bool:
        result: Optional[PullRequestResult] = None
        error: Optional[FetchError] = None
        try:
            result = await self.client.fetch_pull_requests(token)
        except FetchError as e:
            error = e

        if not self._is_current(generation):
            logger.debug("Poller stopped during pull request fetch, dropping result")
            return False

        if result is not None:
            logger.info("Fetched %d open pull requests", len(result.all_prs))
            self.state.buckets = result.buckets
            self.state.status = ViewStatus.populated
            self.state.error = None
            self.state.last_refreshed_at = datetime.now(timezone.utc)
            return True

        assert error is not None
        logger.error("Pull request fetch failed: %s", error)
        record_fetch_error("pull_requests", error.kind)

        if isinstance(error, AuthError):
            self.state.status = ViewStatus.error
            self.state.error = ErrorInfo(
                ErrorKind.auth, f"Authentication failed: {str(error)[:80]}"
            )
        elif self.state.buckets is None:
            self.state.status = ViewStatus.error
            self.state.error = ErrorInfo(
                ErrorKind(error.kind), f"Error: {str(error)[:80]}"
            )
        elif self.state.error is None or self.state.error.kind != ErrorKind.auth:
            # keep showing the last good snapshot
            self.state.status = ViewStatus.populated
            self.state.error = None
        return False

    async def _refresh_notifications(self, token: str, generation: int) -> None:
        filters = self.preferences.notification_filters
        try:
            count = await self.client.fetch_notifications(token, filters)
        except FetchError as e:
            logger.warning("Notification fetch failed: %s", e)
            record_fetch_error("notifications", e.kind)
            return

        if not self._is_current(generation):
            logger.debug("Poller stopped during notification fetch, dropping result")
            return

        if count is UNCHANGED:
            logger.debug(
                "Notifications unchanged, keeping badge at %d",
                self.state.notification_count,
            )
            return

        self.state.notification_count = count

    async def _publish(self) -> ViewModel:
        view = self.view
        observe_view(view)
        for listener in list(self._listeners):
            try:
                result = listener(view)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.error("State listener failed", exc_info=True)
        return view


def create_scheduler(
    *,
    interval_seconds: Optional[int] = None,
    notification_filters=None,
    token_store: Optional[TokenStore] = None,
    client: Optional[GitHubClient] = None,
) -> PollScheduler:
    preferences = Preferences.from_config()
    if interval_seconds is not None:
        preferences.interval_seconds = interval_seconds
    if notification_filters is not None:
        preferences.notification_filters = notification_filters

    return PollScheduler(
        client=client or GitHubClient(),
        token_store=token_store or EnvTokenStore(),
        preferences=preferences,
    )
