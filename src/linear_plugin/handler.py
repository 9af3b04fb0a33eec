"""
AWS Lambda handler: JSON request {action, text, options} -> Linear action.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from typing import Any

from .config import Settings, load_settings
from .errors import LinearAPIError, LinearConfigurationError
from .logs import configure_logging, log_event
from .plugin import get_action, validate
from .runtime import LambdaRuntime
from .service import SERVICE_NAME, LinearService

logger = logging.getLogger(__name__)

# One runtime (and its registered service) per warm Lambda container
_runtime: LambdaRuntime | None = None


def _rid(context: Any) -> str | None:
    return getattr(context, "aws_request_id", None)


def _json(status: int, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json; charset=utf-8"},
        "body": json.dumps(body, ensure_ascii=False, default=str),
    }


def _supplied_secret(event: dict[str, Any]) -> str | None:
    """Shared secret from `X-Webhook-Secret` or, for Function URLs, `?token=`."""
    headers = {str(k).lower(): v for k, v in (event.get("headers") or {}).items()}
    if headers.get("x-webhook-secret"):
        return headers["x-webhook-secret"]
    return (event.get("queryStringParameters") or {}).get("token")


def _read_request(event: dict[str, Any]) -> dict[str, Any]:
    raw = event.get("body") or ""
    if event.get("isBase64Encoded"):
        raw = base64.b64decode(raw)
    try:
        payload = json.loads(raw or "{}")
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


async def _get_runtime(settings: Settings) -> LambdaRuntime:
    global _runtime
    if _runtime is None or _runtime.get_service(SERVICE_NAME) is None:
        runtime = LambdaRuntime(settings)
        runtime.register_service(SERVICE_NAME, await LinearService.start(runtime, settings))
        _runtime = runtime
    return _runtime


async def _dispatch(settings: Settings, name: str, text: str, options: dict[str, Any]) -> dict[str, Any]:
    action = get_action(name)
    if action is None:
        return {"success": False, "error": f"unknown action: {name}"}
    runtime = await _get_runtime(settings)
    if not validate(runtime):
        return {"success": False, "error": "Linear service not available"}

    replies: list[str] = []

    async def callback(reply: str) -> None:
        replies.append(reply)

    result = await action.handler(runtime, text, options, callback)
    out = result.to_dict()
    out["action"] = action.name
    out["replies"] = replies
    return out


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    configure_logging()
    settings = load_settings()
    start_ts = time.time()

    if settings.webhook_shared_secret:
        supplied = _supplied_secret(event)
        if supplied != settings.webhook_shared_secret:
            log_event(logger, "auth_failed", logging.WARNING, rid=_rid(context), reason="token_mismatch")
            return _json(401, {"error": "unauthorized"})

    payload = _read_request(event)
    name = payload.get("action")
    if not isinstance(name, str) or not name.strip():
        log_event(logger, "ignored_no_action", rid=_rid(context), keys=sorted(payload))
        return _json(400, {"error": "missing action"})
    text = payload.get("text") or ""
    options = payload.get("options") if isinstance(payload.get("options"), dict) else {}

    try:
        out = asyncio.run(_dispatch(settings, name, str(text), options))
    except LinearConfigurationError as e:
        log_event(logger, "config_error", logging.ERROR, rid=_rid(context), error=str(e))
        return _json(500, {"error": str(e)})
    except LinearAPIError as e:
        log_event(logger, "service_start_failed", logging.ERROR, rid=_rid(context), error=str(e))
        return _json(502, {"error": str(e)})

    log_event(
        logger,
        "done",
        rid=_rid(context),
        action=out.get("action") or name,
        success=out.get("success"),
        total_ms=int((time.time() - start_ts) * 1000),
    )
    status = 404 if out.get("error", "").startswith("unknown action") else 200
    return _json(status, out)
