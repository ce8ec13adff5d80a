"""
Queue Service
=============
Business rules between the console and the repository:
  - blank queue URLs / names / bodies / receipt handles never reach the provider
  - FIFO queues always carry exactly one ".fifo" suffix; a ".fifo" name wins
    over an explicit standard type
  - numeric queue and message settings are range checked
  - receive parameters are clamped, not rejected (this is a browsing tool)

Provider errors pass through untouched: the repository has already said
which API failed and the provider's text is usually what the user needs.
"""
from __future__ import annotations

import logging
from typing import Mapping

from shared.context import OperationContext
from shared.errors import ValidationError
from shared.models import (
    FIFO_SUFFIX, CreateQueueInput, CreateQueueRequest, CreateQueueResult, DeleteMessageInput,
    QueueDetail, QueueSummary, QueueType, ReceiveMessagesInput, ReceiveMessagesRequest,
    ReceiveMessagesResult, SendMessageInput, SendMessageRequest, UpdateQueueAttributesInput,
)

from .repository import SqsRepository

logger = logging.getLogger(__name__)

DELAY_SECONDS_RANGE = (0, 900)
MESSAGE_RETENTION_RANGE = (60, 1_209_600)
VISIBILITY_TIMEOUT_RANGE = (0, 43_200)

DEFAULT_MAX_MESSAGES = 10
MAX_MESSAGES_RANGE = (1, 10)
DEFAULT_WAIT_TIME_SECONDS = 20
WAIT_TIME_RANGE = (0, 20)


class QueueService:
    def __init__(self, repository: SqsRepository):
        self._repo = repository

    # ------------------------------------------------------------------
    # Queues
    # ------------------------------------------------------------------

    def list_queues(self, ctx: OperationContext | None = None) -> list[QueueSummary]:
        """All queues, ordered by name (URL breaks ties so paging order never leaks through)."""
        queues = self._repo.list_queues(ctx)
        return sorted(queues, key=lambda q: (q.name, q.url))

    def create_queue(self, request: CreateQueueInput, ctx: OperationContext | None = None) -> CreateQueueResult:
        name = request.name.strip()
        if not name:
            raise ValidationError("queue name is required")

        queue_type = resolve_queue_type(request.type)
        if queue_type is QueueType.FIFO and not name.endswith(FIFO_SUFFIX):
            name += FIFO_SUFFIX
        if queue_type is QueueType.STANDARD and name.endswith(FIFO_SUFFIX):
            queue_type = QueueType.FIFO

        attributes = _queue_settings(
            request.delay_seconds, request.message_retention_period, request.visibility_timeout,
        )

        if queue_type is QueueType.FIFO:
            attributes["FifoQueue"] = "true"
            if request.content_based_deduplication:
                attributes["ContentBasedDeduplication"] = "true"
        elif request.content_based_deduplication:
            raise ValidationError("content-based deduplication is only available for FIFO queues")

        queue_url = self._repo.create_queue(CreateQueueRequest(name=name, attributes=attributes), ctx)
        return CreateQueueResult(queue_url=queue_url)

    def queue_detail(self, queue_url: str, ctx: OperationContext | None = None) -> QueueDetail:
        return self._repo.get_queue_detail(_require_queue_url(queue_url), ctx)

    def update_queue_attributes(
        self, request: UpdateQueueAttributesInput, ctx: OperationContext | None = None,
    ) -> None:
        queue_url = _require_queue_url(request.queue_url)
        attributes = _queue_settings(
            request.delay_seconds, request.message_retention_period, request.visibility_timeout,
        )
        if not attributes:
            raise ValidationError("no attributes to update")
        self._repo.set_queue_attributes(queue_url, attributes, ctx)

    def tag_queue(self, queue_url: str, tags: Mapping[str, str], ctx: OperationContext | None = None) -> None:
        queue_url = _require_queue_url(queue_url)
        cleaned = {key.strip(): value for key, value in tags.items() if key.strip()}
        if not cleaned:
            raise ValidationError("at least one tag is required")
        self._repo.tag_queue(queue_url, cleaned, ctx)

    def delete_queue(self, queue_url: str, ctx: OperationContext | None = None) -> None:
        self._repo.delete_queue(_require_queue_url(queue_url), ctx)

    def purge_queue(self, queue_url: str, ctx: OperationContext | None = None) -> None:
        self._repo.purge_queue(_require_queue_url(queue_url), ctx)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_message(self, request: SendMessageInput, ctx: OperationContext | None = None) -> None:
        queue_url = _require_queue_url(request.queue_url)
        if not request.body.strip():
            raise ValidationError("message body is required")

        if request.delay_seconds is not None:
            _check_range(request.delay_seconds, DELAY_SECONDS_RANGE, "delay seconds")

        # later duplicates overwrite earlier ones
        attributes: dict[str, str] = {}
        for attribute in request.attributes:
            name = attribute.name.strip()
            if name:
                attributes[name] = attribute.value

        message_id = self._repo.send_message(
            SendMessageRequest(
                queue_url=queue_url,
                body=request.body,
                message_group_id=request.message_group_id.strip(),
                message_deduplication_id=request.message_deduplication_id.strip(),
                delay_seconds=request.delay_seconds,
                attributes=attributes,
            ),
            ctx,
        )
        logger.info("Message sent", extra={"queue_url": queue_url, "message_id": message_id})

    def receive_messages(
        self, request: ReceiveMessagesInput, ctx: OperationContext | None = None,
    ) -> ReceiveMessagesResult:
        queue_url = _require_queue_url(request.queue_url)

        max_messages = DEFAULT_MAX_MESSAGES
        if request.max_messages_provided:
            max_messages = _clamp(request.max_messages, MAX_MESSAGES_RANGE)

        wait_time = DEFAULT_WAIT_TIME_SECONDS
        if request.wait_time_provided:
            wait_time = _clamp(request.wait_time_seconds, WAIT_TIME_RANGE)

        messages = self._repo.receive_messages(
            ReceiveMessagesRequest(queue_url=queue_url, max_messages=max_messages, wait_time_seconds=wait_time),
            ctx,
        )
        return ReceiveMessagesResult(messages=messages)

    def delete_message(self, request: DeleteMessageInput, ctx: OperationContext | None = None) -> None:
        queue_url = _require_queue_url(request.queue_url)
        receipt_handle = request.receipt_handle.strip()
        if not receipt_handle:
            raise ValidationError("receipt handle is required")
        self._repo.delete_message(queue_url, receipt_handle, ctx)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def resolve_queue_type(raw: str | None) -> QueueType:
    """Unset means standard; anything other than standard/fifo is rejected."""
    value = (raw or "").strip().lower()
    if not value:
        return QueueType.STANDARD
    try:
        return QueueType(value)
    except ValueError:
        raise ValidationError("invalid queue type") from None


def _require_queue_url(queue_url: str) -> str:
    queue_url = (queue_url or "").strip()
    if not queue_url:
        raise ValidationError("queue url is required")
    return queue_url


def _queue_settings(
    delay_seconds: int | None,
    message_retention_period: int | None,
    visibility_timeout: int | None,
) -> dict[str, str]:
    attributes: dict[str, str] = {}
    if delay_seconds is not None:
        _check_range(delay_seconds, DELAY_SECONDS_RANGE, "delay seconds")
        attributes["DelaySeconds"] = str(delay_seconds)
    if message_retention_period is not None:
        _check_range(message_retention_period, MESSAGE_RETENTION_RANGE, "message retention period")
        attributes["MessageRetentionPeriod"] = str(message_retention_period)
    if visibility_timeout is not None:
        _check_range(visibility_timeout, VISIBILITY_TIMEOUT_RANGE, "visibility timeout")
        attributes["VisibilityTimeout"] = str(visibility_timeout)
    return attributes


def _check_range(value: int, bounds: tuple[int, int], label: str) -> None:
    low, high = bounds
    if not low <= value <= high:
        raise ValidationError(f"{label} must be between {low} and {high}")


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(value, high))
