# storemirror/routes/dispatch.py
import json
import threading
from concurrent.futures import TimeoutError as FutureTimeout
from functools import partial
from typing import Any, Callable

from ..config import ConfigurationError
from ..services.container import current
from ..services.deadline import Cancelled
from ..utils.logger import error, info, warn
from ..utils.security import WebhookMeta

# outcome statuses that should make the sender redeliver
RETRYABLE = {
    "product-failed": 502,
    "failed": 502,
    "draft-order-failed": 502,
}


def http_status(status: str) -> int:
    return RETRYABLE.get(status, 200)


def parse_payload(raw: bytes) -> dict:
    if not raw:
        return {}
    try:
        body = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return {}
    return body if isinstance(body, dict) else {}


def ignored(meta: WebhookMeta):
    return {"status": "ignored-topic", "topic": meta.topic}, 200


def _log_abandoned(label: str, future) -> None:
    exc = future.exception()
    if isinstance(exc, Cancelled):
        info(f"[{label}] late delivery {exc}")
    elif exc is not None:
        error(f"[{label}] late delivery failed: {type(exc).__name__}", err=exc)
    else:
        info(f"[{label}] late delivery finished", status=getattr(future.result(), "status", None))


def run(label: str, fn: Callable[..., Any], *args):
    """Run an engine call on the webhook pool and answer within the configured deadline.

    A delivery that overruns gets 503 so the sender redelivers, and its cancel event
    is set: the engine call stops at its next remote write instead of finishing.
    """
    svc = current()
    cancel = threading.Event()
    future = svc.pool().submit(fn, *args, cancel=cancel)
    try:
        outcome = future.result(timeout=svc.settings.webhook_deadline)
    except FutureTimeout:
        cancel.set()
        future.add_done_callback(partial(_log_abandoned, label))
        warn(f"[{label}] deadline of {svc.settings.webhook_deadline}s exceeded")
        return {"status": "timeout"}, 503
    except ConfigurationError as e:
        error(f"[{label}] configuration error", err=e)
        return {"status": "config-error", "error": str(e)}, 500
    except Exception as e:
        error(f"[{label}] unexpected failure: {type(e).__name__}", err=e)
        return {"status": "error"}, 500

    body = outcome.to_dict()
    return body, http_status(body.get("status", ""))
