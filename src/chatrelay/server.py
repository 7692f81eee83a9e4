"""HTTP server for chatrelay: health check and Slack Events API webhook."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable

from aiohttp import web
from slack_sdk.signature import SignatureVerifier

from chatrelay.core.config import RelaySettings
from chatrelay.core.error_handling import COMMON_HANDLER_EXCEPTIONS, log_exception
from chatrelay.logic.dispatcher import Dispatcher
from chatrelay.services.slack.events import (
    AppMention,
    IgnoredEvent,
    UrlVerification,
    parse_event,
)

logger = logging.getLogger(__name__)

RequestHandler = Callable[[web.Request], Awaitable[web.StreamResponse]]
SERVER_HANDLER_EXCEPTIONS = COMMON_HANDLER_EXCEPTIONS
SLACK_EVENTS_PATH = "/slack/events"

DISPATCHER_KEY = web.AppKey("dispatcher", Dispatcher)
VERIFIER_KEY = web.AppKey("signature_verifier", SignatureVerifier)
BACKGROUND_TASKS_KEY = web.AppKey("background_tasks", set)


@web.middleware
async def _error_middleware(
    request: web.Request,
    handler: RequestHandler,
) -> web.StreamResponse:
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except SERVER_HANDLER_EXCEPTIONS as exc:
        log_exception(
            logger=logger,
            message="Unhandled server error",
            error=exc,
            context={
                "method": request.method,
                "path": request.path,
            },
        )
        return web.Response(status=500, text="Internal server error")


async def health_check(_request: web.Request) -> web.Response:
    """Return a basic liveness response."""
    return web.Response(text="I'm alive")


def _signature_is_valid(request: web.Request, body: bytes) -> bool:
    verifier = request.app.get(VERIFIER_KEY)
    if verifier is None:
        return True
    timestamp = request.headers.get("X-Slack-Request-Timestamp", "")
    signature = request.headers.get("X-Slack-Signature")
    if not timestamp.isdigit() or not signature:
        return False
    return verifier.is_valid(body=body, timestamp=timestamp, signature=signature)


def _spawn_dispatch(app: web.Application, mention: AppMention) -> None:
    tasks: set[asyncio.Task[object]] = app[BACKGROUND_TASKS_KEY]
    task = asyncio.create_task(
        app[DISPATCHER_KEY].dispatch(mention),
        name="chatrelay-dispatch",
    )
    tasks.add(task)
    task.add_done_callback(tasks.discard)


async def slack_events(request: web.Request) -> web.Response:
    """Receive Slack events.

    Mentions are dispatched in the background so Slack gets its 200 within
    the three second window even while the work queue is full.
    """
    body = await request.read()
    if not _signature_is_valid(request, body):
        logger.warning("Rejected Slack request with invalid signature")
        return web.Response(status=401, text="invalid signature")

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return web.Response(status=400, text="parse event error")
    if not isinstance(payload, dict):
        return web.Response(status=400, text="parse event error")

    match parse_event(payload):
        case UrlVerification(challenge=challenge):
            return web.Response(text=challenge, content_type="text/plain")
        case AppMention() as mention:
            _spawn_dispatch(request.app, mention)
        case IgnoredEvent(reason=reason):
            logger.debug("Ignoring Slack event: %s", reason)

    return web.Response(status=200)


async def _cancel_background_tasks(app: web.Application) -> None:
    tasks = list(app[BACKGROUND_TASKS_KEY])
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)


def build_app(
    dispatcher: Dispatcher,
    *,
    signing_secret: str | None,
) -> web.Application:
    """Create the web application serving the health check and webhook."""
    app = web.Application(middlewares=[_error_middleware])
    app[DISPATCHER_KEY] = dispatcher
    app[BACKGROUND_TASKS_KEY] = set()
    if signing_secret:
        app[VERIFIER_KEY] = SignatureVerifier(signing_secret)
    else:
        logger.warning(
            "SLACK_SIGNING_SECRET not configured, skipping request verification",
        )
    app.on_cleanup.append(_cancel_background_tasks)
    app.add_routes(
        [
            web.get("/", health_check),
            web.post(SLACK_EVENTS_PATH, slack_events),
        ],
    )
    return app


async def start_server(
    settings: RelaySettings,
    dispatcher: Dispatcher,
) -> web.AppRunner:
    """Start the HTTP server.

    Returns the underlying aiohttp runner so callers can clean it up on shutdown.
    """
    app = build_app(dispatcher, signing_secret=settings.signing_secret)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, settings.host, settings.port)
    await site.start()
    logger.info("Listening for Slack events on port %s", settings.port)
    return runner
