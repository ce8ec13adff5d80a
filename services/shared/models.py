"""
Queue Console Data Model
========================
Every value that crosses the service boundary is a frozen Pydantic model.
Nothing here is cached or mutated after construction: each list/detail call
builds fresh summaries from whatever the provider reports at that moment.

Two families live in this module:
  - caller-facing inputs/outputs (CreateQueueInput, QueueSummary, ...)
  - provider-facing requests (CreateQueueRequest, ...), already validated by
    the service and consumed only by the repository.

Inputs deliberately accept out-of-range numbers. Range rules belong to the
service, which reports them as user-facing ValidationErrors instead of a
Pydantic error dump.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

FIFO_SUFFIX = ".fifo"


# ---------------------------------------------------------------------------
# Domain enums
# ---------------------------------------------------------------------------

class QueueType(str, Enum):
    STANDARD = "standard"
    FIFO = "fifo"

    @property
    def label(self) -> str:
        return "FIFO" if self is QueueType.FIFO else "Standard"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Queue views
# ---------------------------------------------------------------------------

class QueueSummary(_Frozen):
    """
    One row of the queue inventory.

    created_at is None when the provider did not report a usable timestamp.
    encryption is "KMS" when a KMS key id is configured, otherwise "None".
    """
    url: str
    name: str
    type: QueueType = QueueType.STANDARD
    created_at: datetime | None = None
    messages_available: int = Field(default=0, ge=0)
    messages_in_flight: int = Field(default=0, ge=0)
    encryption: str = "None"
    content_based_deduplication: bool = False

    @property
    def is_fifo(self) -> bool:
        return self.type is QueueType.FIFO


class QueueDetail(QueueSummary):
    """Summary plus the raw attribute and tag maps for the "show everything" view."""
    arn: str = ""
    last_modified_at: datetime | None = None
    attributes: dict[str, str] = Field(default_factory=dict)
    tags: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Caller-facing inputs and results
# ---------------------------------------------------------------------------

class CreateQueueInput(_Frozen):
    name: str = ""
    type: str | None = None
    delay_seconds: int | None = None
    message_retention_period: int | None = None
    visibility_timeout: int | None = None
    content_based_deduplication: bool = False


class CreateQueueResult(_Frozen):
    queue_url: str


class UpdateQueueAttributesInput(_Frozen):
    queue_url: str = ""
    delay_seconds: int | None = None
    message_retention_period: int | None = None
    visibility_timeout: int | None = None


class MessageAttribute(_Frozen):
    name: str
    value: str = ""


class SendMessageInput(_Frozen):
    queue_url: str = ""
    body: str = ""
    message_group_id: str = ""
    message_deduplication_id: str = ""
    delay_seconds: int | None = None
    attributes: list[MessageAttribute] = Field(default_factory=list)


class ReceiveMessagesInput(_Frozen):
    """
    max_messages / wait_time_seconds left unset mean "use the default".
    An explicit 0 is a real value (a short poll), so "provided" is tracked
    separately from the number itself.
    """
    queue_url: str = ""
    max_messages: int | None = None
    wait_time_seconds: int | None = None

    @property
    def max_messages_provided(self) -> bool:
        return "max_messages" in self.model_fields_set and self.max_messages is not None

    @property
    def wait_time_provided(self) -> bool:
        return "wait_time_seconds" in self.model_fields_set and self.wait_time_seconds is not None


class ReceivedMessage(_Frozen):
    id: str
    body: str = ""
    receipt_handle: str = ""
    receive_count: int = Field(default=0, ge=0)
    attributes: list[MessageAttribute] = Field(default_factory=list)


class ReceiveMessagesResult(_Frozen):
    messages: list[ReceivedMessage] = Field(default_factory=list)


class DeleteMessageInput(_Frozen):
    queue_url: str = ""
    receipt_handle: str = ""


# ---------------------------------------------------------------------------
# Provider-facing requests (service -> repository)
# ---------------------------------------------------------------------------

class CreateQueueRequest(_Frozen):
    name: str
    attributes: dict[str, str] = Field(default_factory=dict)


class SendMessageRequest(_Frozen):
    queue_url: str
    body: str
    message_group_id: str = ""
    message_deduplication_id: str = ""
    delay_seconds: int | None = None
    attributes: dict[str, str] = Field(default_factory=dict)


class ReceiveMessagesRequest(_Frozen):
    queue_url: str
    max_messages: int
    wait_time_seconds: int
