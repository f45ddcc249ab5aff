import logging
from typing import Optional

from prometheus_client import core
from prometheus_client.exposition import generate_latest
from sanic import Sanic, response
from sanic.log import logger
import sanic.log

from prstatus import config
from prstatus.logger import get_log_handlers
from prstatus.poller import PollScheduler, create_scheduler
from prstatus.state_dashboard import ViewBroadcaster, register_state_routes


logging.basicConfig(
    format="%(asctime)s %(name)s %(levelname)s - %(message)s", level=logging.INFO
)


def create_app(scheduler: Optional[PollScheduler] = None) -> Sanic:
    app = Sanic("prstatus")

    logging.getLogger().setLevel(config.OVERRIDE_LOGGING)
    get_log_handlers(sanic.log.logger)

    app.ctx.view_broadcaster = ViewBroadcaster()
    app.ctx.scheduler = scheduler

    @app.listener("before_server_start")
    async def init(app, loop):
        if app.ctx.scheduler is None:
            app.ctx.scheduler = create_scheduler()

        app.ctx.scheduler.subscribe(app.ctx.view_broadcaster.publish)
        logger.debug("Activating poller")
        app.add_task(app.ctx.scheduler.activate())

    @app.listener("after_server_stop")
    async def teardown(app, loop):
        logger.debug("Stopping poller")
        await app.ctx.scheduler.stop()

    @app.get("/status")
    async def status(request):
        logger.debug("status check")
        return response.text("ok")

    @app.get("/metrics")
    async def metrics(request):
        return response.raw(generate_latest(core.REGISTRY))

    register_state_routes(app)

    return app
