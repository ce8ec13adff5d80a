"""
Queue Console API Handler
=========================
API Gateway proxy handler (also fine behind a local Lambda emulator) exposing
the queue service as JSON:

  GET    /queues                          → list queues
  POST   /queues                          → create queue
  GET    /queues/{url}                    → queue detail
  PATCH  /queues/{url}                    → update queue attributes
  DELETE /queues/{url}                    → delete queue
  POST   /queues/{url}/purge              → purge queue
  POST   /queues/{url}/tags               → tag queue
  POST   /queues/{url}/messages           → send message
  POST   /queues/{url}/messages/receive   → receive messages
  POST   /queues/{url}/messages/delete    → delete message

{url} is the percent-encoded queue URL. The handler is thin: parse → service
→ serialise. Every rule lives in QueueService.
"""
from __future__ import annotations

import json
import re
from typing import Any, Callable
from urllib.parse import unquote

from pydantic import ValidationError as SchemaValidationError

from shared.context import OperationContext
from shared.errors import OperationCancelledError, ProviderError, ValidationError
from shared.logger import get_logger
from shared.models import (
    CreateQueueInput, DeleteMessageInput, ReceiveMessagesInput, SendMessageInput,
    UpdateQueueAttributesInput,
)
from shared.sqs_client import get_sqs_client

from .repository import SqsRepository
from .service import QueueService

logger = get_logger(__name__)

_QUEUE_PATH = re.compile(r"^/queues/(?P<url>[^/]+)(?P<rest>(?:/[a-z]+)*)/?$")


def build_service(client=None) -> QueueService:
    return QueueService(SqsRepository(client or get_sqs_client()))


# Built on first use and reused across warm invocations
_service: QueueService | None = None


def default_service() -> QueueService:
    global _service
    if _service is None:
        _service = build_service()
    return _service


# ---------------------------------------------------------------------------
# Main handler — dispatches to sub-handlers by HTTP method + path
# ---------------------------------------------------------------------------

def handler(event: dict, context, service: QueueService | None = None) -> dict:
    http_method = event.get("httpMethod", "")
    path = event.get("path", "")
    ctx = OperationContext.from_lambda_context(context)

    try:
        route = _resolve(http_method, path)
        if route is None:
            return _response(404, {"error": "Not Found"})
        fn, queue_url = route
        return fn(service or default_service(), ctx, queue_url, _json_body(event))
    except _BadRequest as e:
        return _response(400, {"error": str(e)})
    except SchemaValidationError:
        return _response(400, {"error": "invalid request body"})
    except ValidationError as e:
        return _response(400, {"error": str(e)})
    except ProviderError as e:
        logger.error(
            "Provider call failed",
            extra={"http_method": http_method, "path": path, "operation": e.operation, "error": str(e)},
        )
        return _response(502, {"error": str(e)})
    except OperationCancelledError as e:
        return _response(504, {"error": str(e)})
    except Exception:
        logger.exception(
            "Unhandled exception in queue_service handler",
            extra={"http_method": http_method, "path": path},
        )
        return _response(500, {"error": "Internal server error"})


# ---------------------------------------------------------------------------
# Queues
# ---------------------------------------------------------------------------

def _list_queues(service: QueueService, ctx, _url, _body) -> dict:
    queues = service.list_queues(ctx)
    return _response(200, {"queues": [q.model_dump(mode="json") for q in queues]})


def _create_queue(service: QueueService, ctx, _url, body) -> dict:
    result = service.create_queue(CreateQueueInput(**body), ctx)
    return _response(201, result.model_dump())


def _queue_detail(service: QueueService, ctx, queue_url, _body) -> dict:
    detail = service.queue_detail(queue_url, ctx)
    return _response(200, detail.model_dump(mode="json"))


def _update_queue(service: QueueService, ctx, queue_url, body) -> dict:
    service.update_queue_attributes(UpdateQueueAttributesInput(**{**body, "queue_url": queue_url}), ctx)
    return _response(200, {"message": "Queue attributes updated."})


def _delete_queue(service: QueueService, ctx, queue_url, _body) -> dict:
    service.delete_queue(queue_url, ctx)
    return _response(200, {"message": "Queue deleted."})


def _purge_queue(service: QueueService, ctx, queue_url, _body) -> dict:
    service.purge_queue(queue_url, ctx)
    return _response(200, {"message": "Queue purged."})


def _tag_queue(service: QueueService, ctx, queue_url, body) -> dict:
    tags = body.get("tags")
    if not isinstance(tags, dict):
        raise _BadRequest("tags must be an object")
    service.tag_queue(queue_url, {str(k): str(v) for k, v in tags.items()}, ctx)
    return _response(200, {"message": "Queue tagged."})


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

def _send_message(service: QueueService, ctx, queue_url, body) -> dict:
    service.send_message(SendMessageInput(**{**body, "queue_url": queue_url}), ctx)
    return _response(200, {"message": "Message sent successfully."})


def _receive_messages(service: QueueService, ctx, queue_url, body) -> dict:
    result = service.receive_messages(ReceiveMessagesInput(**{**body, "queue_url": queue_url}), ctx)
    return _response(200, result.model_dump(mode="json"))


def _delete_message(service: QueueService, ctx, queue_url, body) -> dict:
    service.delete_message(DeleteMessageInput(**{**body, "queue_url": queue_url}), ctx)
    return _response(200, {"message": "Message deleted successfully."})


_QUEUE_ROUTES: dict[tuple[str, str], Callable[..., dict]] = {
    ("GET", ""): _queue_detail,
    ("PATCH", ""): _update_queue,
    ("DELETE", ""): _delete_queue,
    ("POST", "/purge"): _purge_queue,
    ("POST", "/tags"): _tag_queue,
    ("POST", "/messages"): _send_message,
    ("POST", "/messages/receive"): _receive_messages,
    ("POST", "/messages/delete"): _delete_message,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class _BadRequest(Exception):
    pass


def _resolve(http_method: str, path: str) -> tuple[Callable[..., dict], str] | None:
    if path.rstrip("/") == "/queues":
        if http_method == "GET":
            return _list_queues, ""
        if http_method == "POST":
            return _create_queue, ""
        return None

    match = _QUEUE_PATH.match(path)
    if not match:
        return None
    fn = _QUEUE_ROUTES.get((http_method, match.group("rest")))
    if fn is None:
        return None
    return fn, unquote(match.group("url"))


def _json_body(event: dict) -> dict[str, Any]:
    raw = event.get("body")
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        raise _BadRequest("invalid request body") from None
    if not isinstance(body, dict):
        raise _BadRequest("invalid request body")
    return body


def _response(status_code: int, body: dict) -> dict:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }
