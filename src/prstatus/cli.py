import asyncio
import logging
from typing import List, Optional

import typer

from prstatus import config
from prstatus.logger import configure_logging
from prstatus.poller import PollScheduler, ViewModel, ViewStatus, create_scheduler
from prstatus.render import render_view
from prstatus.token_store import MemoryTokenStore

logger = logging.getLogger("prstatus")

app = typer.Typer()

TokenOption = typer.Option(
    None, "--token", help="Access token; defaults to the configured token variable"
)
IntervalOption = typer.Option(None, "--interval", "-i", help="Poll interval seconds")
FilterOption = typer.Option(
    None, "--filter", "-f", help="Notification reason counted by the badge"
)


@app.callback()
def init(verbose: bool = typer.Option(False, "--verbose", "-v")):
    configure_logging(logging.DEBUG if verbose else None)


def _scheduler(
    token: Optional[str],
    interval: Optional[int],
    filters: Optional[List[str]],
) -> PollScheduler:
    try:
        return create_scheduler(
            interval_seconds=interval,
            notification_filters=filters or None,
            token_store=MemoryTokenStore(token) if token else None,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e))


@app.command()
def once(
    token: Optional[str] = TokenOption,
    filters: Optional[List[str]] = FilterOption,
):
    """Fetch once and print the current pull request status."""

    async def handle() -> ViewModel:
        scheduler = _scheduler(token, None, filters)
        try:
            return await scheduler.refresh()
        finally:
            await scheduler.stop()

    view = asyncio.run(handle())
    typer.echo(render_view(view))
    if view.status == ViewStatus.error:
        raise typer.Exit(code=1)


@app.command()
def watch(
    token: Optional[str] = TokenOption,
    interval: Optional[int] = IntervalOption,
    filters: Optional[List[str]] = FilterOption,
):
    """Poll continuously and print the status whenever it changes."""

    async def handle():
        scheduler = _scheduler(token, interval, filters)
        last: List[ViewModel] = []

        def show(view: ViewModel) -> None:
            if last and last[-1] == view:
                return
            last[:] = [view]
            typer.echo(render_view(view))
            typer.echo("")

        scheduler.subscribe(show)
        try:
            await scheduler.activate()
            await asyncio.Event().wait()
        finally:
            await scheduler.stop()

    try:
        asyncio.run(handle())
    except KeyboardInterrupt:
        logger.info("Interrupted")


@app.command()
def serve(
    host: str = typer.Option(config.WEB_HOST),
    port: int = typer.Option(config.WEB_PORT),
    token: Optional[str] = TokenOption,
    interval: Optional[int] = IntervalOption,
    filters: Optional[List[str]] = FilterOption,
):
    """Serve the status as JSON, an event stream and Prometheus metrics."""
    from prstatus.web import create_app

    web_app = create_app(_scheduler(token, interval, filters))
    web_app.run(host=host, port=port, single_process=True)


def main():
    app()
