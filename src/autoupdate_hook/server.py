"""aiohttp server exposing the auto-update hook.

Endpoints:
    GET  /health  - liveness check (no auth, no rate limit)
    GET  /hook    - trigger ``podman auto-update``
    POST /hook    - same; the body is only read to verify GitHub signatures
"""

from __future__ import annotations

import asyncio
import contextlib
import math
import signal
from typing import Any

from aiohttp import web

from autoupdate_hook.auth import (
    EVENT_HEADER,
    authorize_bearer,
    verify_github_delivery,
)
from autoupdate_hook.config import Settings
from autoupdate_hook.errors import AuthenticationFailure, HookError
from autoupdate_hook.logging import get_logger
from autoupdate_hook.models import UpdateOutcome
from autoupdate_hook.ratelimit import RateLimiter
from autoupdate_hook.runner import CommandRunner, SubprocessRunner, command_on_path
from autoupdate_hook.trigger import UpdateTrigger

log = get_logger("autoupdate_hook.server")

HOOK_PATH = "/hook"

SETTINGS_KEY = web.AppKey("settings", Settings)
TRIGGER_KEY = web.AppKey("trigger", UpdateTrigger)
LIMITER_KEY = web.AppKey("rate_limiter", RateLimiter)
INFLIGHT_KEY = web.AppKey("inflight", set)


# ------------------------------------------------------------------
# Middleware
# ------------------------------------------------------------------


@web.middleware
async def rate_limit_middleware(
    request: web.Request,
    handler: Any,
) -> web.StreamResponse:
    """Throttle hook requests before they are authenticated."""
    limiter = request.app.get(LIMITER_KEY)
    if limiter is None or request.path != HOOK_PATH:
        return await handler(request)

    allowed, retry_after = limiter.check(_rate_limit_key(request))
    if not allowed:
        log.warning("hook_rate_limited", retry_after=round(retry_after, 2), remote=request.remote)
        return web.Response(
            status=429,
            text="too many requests\n",
            headers={"Retry-After": str(math.ceil(retry_after))},
        )
    return await handler(request)


def _rate_limit_key(request: web.Request) -> str:
    """Bucket for a request.

    The configured bearer token gets its own bucket. Any other credential is
    bucketed by peer address, so rotating guesses does not buy fresh slots.
    Without a bearer token all callers share one bucket.
    """
    token = request.app[SETTINGS_KEY].token
    if token is None:
        return ""
    if authorize_bearer(token.get_secret_value(), request.headers.get("Authorization")):
        return "bearer"
    return f"remote:{request.remote}"


# ------------------------------------------------------------------
# Handlers
# ------------------------------------------------------------------


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def handle_hook(request: web.Request) -> web.Response:
    """Authenticate the caller, run the update and relay its output."""
    settings = request.app[SETTINGS_KEY]

    try:
        accepted = await _authenticate(request, settings)
    except HookError as exc:
        log.warning("hook_rejected", status=exc.status, reason=str(exc), remote=request.remote)
        return web.Response(status=exc.status, text=_rejection_text(exc))

    if not accepted:
        event = request.headers.get(EVENT_HEADER, "")
        log.info("hook_event_ignored", event=event)
        return web.Response(status=200, text=f"ignored event {event}\n")

    outcome = await _run_detached(request.app)
    return web.Response(status=outcome.http_status, text=outcome.body)


async def _authenticate(request: web.Request, settings: Settings) -> bool:
    if settings.token is not None:
        header = request.headers.get("Authorization")
        if not authorize_bearer(settings.token.get_secret_value(), header):
            raise AuthenticationFailure("bearer token missing or incorrect")
        return True

    if settings.github_secret is not None:
        body = await request.read()
        return verify_github_delivery(
            settings.github_secret.get_secret_value(),
            settings.github_events,
            request.headers,
            body,
        )

    return True


def _rejection_text(exc: HookError) -> str:
    if isinstance(exc, AuthenticationFailure):
        return "unauthorized\n"
    return f"{exc}\n"


async def _run_detached(app: web.Application) -> UpdateOutcome:
    """Run the trigger in its own task so a client disconnect cannot cancel it."""
    inflight: set[asyncio.Task[UpdateOutcome]] = app[INFLIGHT_KEY]
    task = asyncio.create_task(app[TRIGGER_KEY].run())
    inflight.add(task)
    task.add_done_callback(inflight.discard)
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        log.warning("hook_client_gone", detail="update keeps running, result discarded")
        raise


async def _drain_inflight(app: web.Application) -> None:
    inflight = app[INFLIGHT_KEY]
    if inflight:
        log.info("waiting_for_running_updates", count=len(inflight))
        await asyncio.gather(*inflight, return_exceptions=True)


# ------------------------------------------------------------------
# Application factory
# ------------------------------------------------------------------


def create_app(
    settings: Settings,
    trigger: UpdateTrigger | None = None,
    runner: CommandRunner | None = None,
    rate_limiter: RateLimiter | None = None,
) -> web.Application:
    """Build the aiohttp application.

    Args:
        settings: Frozen process settings.
        trigger: Update trigger to use; built from ``settings`` when omitted.
        runner: Runner for the default trigger; a ``SubprocessRunner`` when omitted.
        rate_limiter: Limiter to use; built from ``settings`` when omitted.
    """
    if trigger is None:
        trigger = UpdateTrigger(
            runner or SubprocessRunner(timeout=settings.command_timeout),
            command=settings.command,
            args=settings.command_args,
            serialize=settings.serialize_updates,
        )
    if rate_limiter is None and settings.rate_limit_enabled:
        rate_limiter = RateLimiter(
            burst=settings.rate_limit_burst,
            period_seconds=settings.rate_limit_period,
        )

    app = web.Application(middlewares=[rate_limit_middleware])
    app[SETTINGS_KEY] = settings
    app[TRIGGER_KEY] = trigger
    app[INFLIGHT_KEY] = set()
    if rate_limiter is not None:
        app[LIMITER_KEY] = rate_limiter

    app.router.add_get("/health", handle_health)
    app.router.add_get(HOOK_PATH, handle_hook)
    app.router.add_post(HOOK_PATH, handle_hook)
    app.on_shutdown.append(_drain_inflight)
    return app


# ------------------------------------------------------------------
# Lifecycle
# ------------------------------------------------------------------


class HookServer:
    """Owns the aiohttp runner for the hook application."""

    def __init__(self, settings: Settings, trigger: UpdateTrigger | None = None) -> None:
        self._settings = settings
        self._trigger = trigger
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    def create_app(self) -> web.Application:
        self._app = create_app(self._settings, trigger=self._trigger)
        return self._app

    async def start(self) -> None:
        settings = self._settings
        app = self._app or self.create_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, settings.host, settings.port)
        await site.start()

        if settings.auth_mode == "none":
            log.warning("authentication_disabled", detail="any caller can trigger updates")
        elif settings.auth_mode == "github":
            log.info("accepting_github_events", events=settings.github_events or "all")
        else:
            log.info("accepting_bearer_token")
        if not command_on_path(settings.command):
            log.warning("update_command_not_found", command=settings.command)

        log.info(
            "hook_server_started",
            host=settings.host,
            port=settings.port,
            command=app[TRIGGER_KEY].command_line,
            timeout=settings.command_timeout,
            serialize=app[TRIGGER_KEY].serialized,
        )

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        log.info("hook_server_stopped")


async def run_server(settings: Settings, stop_event: asyncio.Event | None = None) -> None:
    """Serve until SIGINT or SIGTERM, then shut down gracefully."""
    stop = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)

    server = HookServer(settings)
    await server.start()
    try:
        await stop.wait()
        log.info("shutdown_signal_received")
    finally:
        await server.stop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(sig)
