from __future__ import annotations

import asyncio
import os
from typing import Any, Dict, Optional, Set

from arq import cron
from arq.connections import RedisSettings

from cfpdesk.application.workflows.decision_workflow import (
    DecisionWorkflow,
    build_default_workflow,
)
from cfpdesk.config.settings import CfpSettings
from cfpdesk.domain.errors import AlreadyResolvedError, NotFoundError, TransportError
from cfpdesk.infrastructure.services.resend_transport import NullMailTransport
from cfpdesk.utils.logging_config import (
    LogFiles,
    Logger,
    clear_trace_id,
    generate_trace_id,
    set_trace_id,
)


def _redis_settings() -> RedisSettings:
    return RedisSettings(
        host=os.getenv("CFPDESK_REDIS_HOST", "127.0.0.1"),
        port=int(os.getenv("CFPDESK_REDIS_PORT", "6379")),
        database=int(os.getenv("CFPDESK_REDIS_DB", "0")),
        password=os.getenv("CFPDESK_REDIS_PASSWORD") or None,
    )


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "y")


def _workflow(ctx: Dict[str, Any]) -> DecisionWorkflow:
    workflow = ctx.get("workflow")
    if workflow is None:
        workflow = build_default_workflow()
        ctx["workflow"] = workflow
    return workflow


async def startup(ctx) -> None:
    workflow = build_default_workflow()
    if isinstance(workflow.transport, NullMailTransport):
        Logger.warning(
            "No mail transport configured; dispatch ticks will be skipped",
            file=LogFiles.DISPATCH,
        )
    ctx["workflow"] = workflow


async def cron_dispatch_scheduled_emails(ctx) -> Dict[str, Any]:
    """
    Cron entrypoint: send every scheduled email whose cancellation window has elapsed.
    """
    trace_id = set_trace_id(generate_trace_id("dispatch"))
    try:
        workflow = _workflow(ctx)
        if isinstance(workflow.transport, NullMailTransport):
            # Sending would only mark every due email failed.
            return {"trace_id": trace_id, "status": "skipped", "reason": "transport not configured"}

        # The send path blocks on the database and the mail API.
        result = await asyncio.to_thread(workflow.tick_dispatch_worker)
        return {"trace_id": trace_id, "status": "ok", **result.to_dict()}
    finally:
        clear_trace_id()


async def send_scheduled_email_job(ctx, email_id: str) -> Dict[str, Any]:
    """
    ARQ job: send one pending email now (the "Send now" button, off the request path).
    """
    trace_id = set_trace_id()
    try:
        workflow = _workflow(ctx)
        try:
            email = await asyncio.to_thread(workflow.send_now, email_id)
        except NotFoundError as e:
            return {"trace_id": trace_id, "status": "not_found", "error": str(e)}
        except AlreadyResolvedError as e:
            return {"trace_id": trace_id, "status": "already_resolved", "error": str(e)}
        except TransportError as e:
            return {"trace_id": trace_id, "status": "failed", "error": str(e)}
        return {"trace_id": trace_id, "status": "ok", "email": email.to_dict()}
    finally:
        clear_trace_id()


def _dispatch_seconds(interval: int) -> Set[int]:
    if interval <= 0 or 60 % interval != 0:
        raise ValueError("dispatch interval must be a divisor of 60 seconds")
    return set(range(0, 60, interval))


def _build_dispatch_cron_jobs(settings: Optional[CfpSettings] = None):
    if not _env_flag("CFPDESK_DISPATCH_ENABLED", "true"):
        return []

    settings = settings or CfpSettings.from_env()
    return [
        cron(
            cron_dispatch_scheduled_emails,
            second=_dispatch_seconds(settings.dispatch_interval_seconds),
            run_at_startup=_env_flag("CFPDESK_DISPATCH_RUN_AT_STARTUP"),
            # A tick never overlaps the previous one.
            unique=True,
        )
    ]


class WorkerSettings:
    functions = [
        send_scheduled_email_job,
        cron_dispatch_scheduled_emails,
    ]
    on_startup = startup
    redis_settings = _redis_settings()

    cron_jobs = _build_dispatch_cron_jobs()
