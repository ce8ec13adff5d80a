"""
Queue Repository
================
All SQS access for the console lives here. The service above it never sees
a boto3 response; it gets QueueSummary / QueueDetail / ReceivedMessage models.

Failure policy:
  Every exception raised by the client (botocore or otherwise) is wrapped in
  ProviderError naming the API that failed. OperationCancelledError is the
  one exception that passes through untouched.
  Two calls are allowed to fail without failing the operation:
    - GetQueueAttributes for one queue while listing -> that queue is skipped
    - ListQueueTags while loading a detail view      -> tags come back empty
  Partial inventory beats no inventory; tags are decoration, attributes are not.
"""
from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Protocol

from shared.context import OperationContext, ensure_context
from shared.errors import OperationCancelledError, ProviderError
from shared.models import (
    FIFO_SUFFIX, CreateQueueRequest, MessageAttribute, QueueDetail, QueueSummary,
    QueueType, ReceivedMessage, ReceiveMessagesRequest, SendMessageRequest,
)

logger = logging.getLogger(__name__)

# Queue attribute names
CREATED_TIMESTAMP = "CreatedTimestamp"
LAST_MODIFIED_TIMESTAMP = "LastModifiedTimestamp"
APPROXIMATE_MESSAGES = "ApproximateNumberOfMessages"
APPROXIMATE_MESSAGES_NOT_VISIBLE = "ApproximateNumberOfMessagesNotVisible"
KMS_MASTER_KEY_ID = "KmsMasterKeyId"
FIFO_QUEUE = "FifoQueue"
CONTENT_BASED_DEDUPLICATION = "ContentBasedDeduplication"
QUEUE_ARN = "QueueArn"

LIST_ATTRIBUTE_NAMES = [
    CREATED_TIMESTAMP,
    APPROXIMATE_MESSAGES,
    APPROXIMATE_MESSAGES_NOT_VISIBLE,
    KMS_MASTER_KEY_ID,
]
FIFO_ATTRIBUTE_NAMES = [FIFO_QUEUE, CONTENT_BASED_DEDUPLICATION]

# Message system attribute names
APPROXIMATE_RECEIVE_COUNT = "ApproximateReceiveCount"
SENT_TIMESTAMP = "SentTimestamp"
APPROXIMATE_FIRST_RECEIVE_TIMESTAMP = "ApproximateFirstReceiveTimestamp"

RECEIVE_SYSTEM_ATTRIBUTE_NAMES = [
    APPROXIMATE_RECEIVE_COUNT,
    SENT_TIMESTAMP,
    APPROXIMATE_FIRST_RECEIVE_TIMESTAMP,
    "MessageGroupId",
    "MessageDeduplicationId",
    "SequenceNumber",
]
_MILLISECOND_TIMESTAMPS = {SENT_TIMESTAMP, APPROXIMATE_FIRST_RECEIVE_TIMESTAMP}

# Calls whose side effects survive an abandoned request
MUTATING_OPERATIONS = frozenset({
    "CreateQueue", "SetQueueAttributes", "TagQueue", "DeleteQueue", "PurgeQueue",
    "SendMessage", "DeleteMessage",
})


class SqsApi(Protocol):
    """The slice of the boto3 SQS client the repository depends on."""

    def list_queues(self, **kwargs: Any) -> dict: ...
    def get_queue_attributes(self, **kwargs: Any) -> dict: ...
    def set_queue_attributes(self, **kwargs: Any) -> dict: ...
    def create_queue(self, **kwargs: Any) -> dict: ...
    def list_queue_tags(self, **kwargs: Any) -> dict: ...
    def tag_queue(self, **kwargs: Any) -> dict: ...
    def delete_queue(self, **kwargs: Any) -> dict: ...
    def purge_queue(self, **kwargs: Any) -> dict: ...
    def send_message(self, **kwargs: Any) -> dict: ...
    def receive_message(self, **kwargs: Any) -> dict: ...
    def delete_message(self, **kwargs: Any) -> dict: ...


class SqsRepository:
    def __init__(self, client: SqsApi):
        self._client = client

    # ------------------------------------------------------------------
    # Queues
    # ------------------------------------------------------------------

    def list_queues(self, ctx: OperationContext | None = None) -> list[QueueSummary]:
        """
        Page through ListQueues and summarise every queue that answers.
        Queues whose attributes cannot be fetched are logged and left out.
        Results come back in provider order; sorting is the caller's business.
        """
        ctx = ensure_context(ctx)
        queues: list[QueueSummary] = []
        params: dict[str, Any] = {}

        while True:
            resp = self._call(ctx, "ListQueues", self._client.list_queues, **params)

            for url in resp.get("QueueUrls", []):
                summary = self._summarise(ctx, url)
                if summary is not None:
                    queues.append(summary)

            next_token = resp.get("NextToken")
            if not next_token:
                break
            params["NextToken"] = next_token

        return queues

    def create_queue(self, request: CreateQueueRequest, ctx: OperationContext | None = None) -> str:
        resp = self._call(
            ensure_context(ctx), "CreateQueue", self._client.create_queue,
            QueueName=request.name,
            Attributes=dict(request.attributes),
        )
        queue_url = resp.get("QueueUrl")
        if not queue_url:
            raise ProviderError("CreateQueue", message="CreateQueue API response does not contain QueueUrl")
        logger.info("Queue created", extra={"queue_url": queue_url})
        return queue_url

    def get_queue_detail(self, queue_url: str, ctx: OperationContext | None = None) -> QueueDetail:
        ctx = ensure_context(ctx)
        resp = self._call(
            ctx, "GetQueueAttributes", self._client.get_queue_attributes,
            QueueUrl=queue_url,
            AttributeNames=["All"],
        )
        attributes = dict(resp.get("Attributes") or {})
        summary = build_queue_summary(queue_url, attributes)

        return QueueDetail(
            **summary.model_dump(),
            arn=attributes.get(QUEUE_ARN, ""),
            last_modified_at=parse_epoch_seconds(attributes.get(LAST_MODIFIED_TIMESTAMP)),
            attributes=attributes,
            tags=self._tags_or_empty(ctx, queue_url),
        )

    def set_queue_attributes(
        self, queue_url: str, attributes: Mapping[str, str], ctx: OperationContext | None = None,
    ) -> None:
        self._call(
            ensure_context(ctx), "SetQueueAttributes", self._client.set_queue_attributes,
            QueueUrl=queue_url,
            Attributes=dict(attributes),
        )

    def tag_queue(self, queue_url: str, tags: Mapping[str, str], ctx: OperationContext | None = None) -> None:
        self._call(
            ensure_context(ctx), "TagQueue", self._client.tag_queue,
            QueueUrl=queue_url,
            Tags=dict(tags),
        )

    def delete_queue(self, queue_url: str, ctx: OperationContext | None = None) -> None:
        self._call(ensure_context(ctx), "DeleteQueue", self._client.delete_queue, QueueUrl=queue_url)
        logger.info("Queue deleted", extra={"queue_url": queue_url})

    def purge_queue(self, queue_url: str, ctx: OperationContext | None = None) -> None:
        self._call(ensure_context(ctx), "PurgeQueue", self._client.purge_queue, QueueUrl=queue_url)
        logger.info("Queue purged", extra={"queue_url": queue_url})

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_message(self, request: SendMessageRequest, ctx: OperationContext | None = None) -> str:
        params: dict[str, Any] = {
            "QueueUrl": request.queue_url,
            "MessageBody": request.body,
        }
        if request.delay_seconds is not None:
            params["DelaySeconds"] = request.delay_seconds

        group_id = request.message_group_id.strip()
        if group_id:
            params["MessageGroupId"] = group_id

        dedup_id = request.message_deduplication_id.strip()
        if dedup_id:
            params["MessageDeduplicationId"] = dedup_id

        message_attributes = {
            key: {"DataType": "String", "StringValue": value}
            for key, value in request.attributes.items()
            if key.strip()
        }
        if message_attributes:
            params["MessageAttributes"] = message_attributes

        resp = self._call(ensure_context(ctx), "SendMessage", self._client.send_message, **params)
        return resp.get("MessageId", "")

    def receive_messages(
        self, request: ReceiveMessagesRequest, ctx: OperationContext | None = None,
    ) -> list[ReceivedMessage]:
        # VisibilityTimeout=0: peeking from the console must not hide messages from real consumers
        resp = self._call(
            ensure_context(ctx), "ReceiveMessage", self._client.receive_message,
            QueueUrl=request.queue_url,
            MaxNumberOfMessages=request.max_messages,
            WaitTimeSeconds=request.wait_time_seconds,
            VisibilityTimeout=0,
            MessageAttributeNames=["All"],
            MessageSystemAttributeNames=RECEIVE_SYSTEM_ATTRIBUTE_NAMES,
        )
        return [to_received_message(raw) for raw in resp.get("Messages", [])]

    def delete_message(self, queue_url: str, receipt_handle: str, ctx: OperationContext | None = None) -> None:
        self._call(
            ensure_context(ctx), "DeleteMessage", self._client.delete_message,
            QueueUrl=queue_url,
            ReceiptHandle=receipt_handle,
        )

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _call(self, ctx: OperationContext, operation: str, fn: Callable[..., dict], **params: Any) -> dict:
        ctx.raise_if_done()
        try:
            return ctx.run(fn, **params) or {}
        except OperationCancelledError:
            if operation in MUTATING_OPERATIONS:
                # the abandoned call keeps running and may still reach the provider
                logger.warning(
                    "abandoned provider call may still complete",
                    extra={"operation": operation},
                )
            raise
        except Exception as e:
            raise ProviderError(operation, e) from e

    def _summarise(self, ctx: OperationContext, queue_url: str) -> QueueSummary | None:
        is_fifo = queue_url.endswith(FIFO_SUFFIX)
        names = LIST_ATTRIBUTE_NAMES + FIFO_ATTRIBUTE_NAMES if is_fifo else LIST_ATTRIBUTE_NAMES
        try:
            resp = self._call(
                ctx, "GetQueueAttributes", self._client.get_queue_attributes,
                QueueUrl=queue_url,
                AttributeNames=list(names),
            )
        except ProviderError as e:
            logger.warning(
                "failed to retrieve queue attributes",
                extra={"queue_url": queue_url, "error": str(e)},
            )
            return None

        attributes = dict(resp.get("Attributes") or {})
        if is_fifo:
            attributes[FIFO_QUEUE] = "true"
        return build_queue_summary(queue_url, attributes)

    def _tags_or_empty(self, ctx: OperationContext, queue_url: str) -> dict[str, str]:
        try:
            resp = self._call(ctx, "ListQueueTags", self._client.list_queue_tags, QueueUrl=queue_url)
        except ProviderError as e:
            logger.warning(
                "failed to retrieve queue tags",
                extra={"queue_url": queue_url, "error": str(e)},
            )
            return {}
        return dict(resp.get("Tags") or {})


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

def queue_name_from_url(queue_url: str) -> str:
    return queue_url.rsplit("/", 1)[-1]


def build_queue_summary(queue_url: str, attributes: Mapping[str, str]) -> QueueSummary:
    """
    Turn a raw attribute map into a QueueSummary.

    A queue is FIFO if the provider says so OR its name ends in ".fifo";
    emulators are not always consistent about reporting FifoQueue.
    Unparseable numbers become 0 and unparseable timestamps None.
    """
    name = queue_name_from_url(queue_url)
    fifo = attributes.get(FIFO_QUEUE) == "true" or name.endswith(FIFO_SUFFIX)

    return QueueSummary(
        url=queue_url,
        name=name,
        type=QueueType.FIFO if fifo else QueueType.STANDARD,
        created_at=parse_epoch_seconds(attributes.get(CREATED_TIMESTAMP)),
        messages_available=parse_count(attributes.get(APPROXIMATE_MESSAGES)),
        messages_in_flight=parse_count(attributes.get(APPROXIMATE_MESSAGES_NOT_VISIBLE)),
        encryption="KMS" if attributes.get(KMS_MASTER_KEY_ID) else "None",
        content_based_deduplication=attributes.get(CONTENT_BASED_DEDUPLICATION) == "true",
    )


def parse_count(raw: str | None) -> int:
    if not raw:
        return 0
    try:
        value = int(raw)
    except ValueError:
        logger.debug("failed to parse integer", extra={"value": raw})
        return 0
    if value < 0:
        logger.debug("negative counter reported", extra={"value": raw})
        return 0
    return value


def parse_epoch_seconds(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromtimestamp(int(float(raw)), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        logger.debug("failed to parse timestamp", extra={"value": raw})
        return None


def format_system_attribute(name: str, value: str) -> str:
    """Render epoch-millisecond timestamps as ISO-8601; pass everything else through."""
    if name not in _MILLISECOND_TIMESTAMPS or not value:
        return value
    try:
        moment = datetime.fromtimestamp(int(value) // 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return value
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def flatten_message_attribute(value: Mapping[str, Any]) -> str | None:
    """
    Collapse one MessageAttributeValue into display text.

    String -> as is; string list -> comma joined; binary -> base64;
    binary list -> base64 entries comma joined. None when nothing is set.
    """
    if value.get("StringValue") is not None:
        return value["StringValue"]
    if value.get("StringListValues"):
        return ", ".join(value["StringListValues"])
    if value.get("BinaryValue"):
        return _b64(value["BinaryValue"])
    if value.get("BinaryListValues"):
        return ", ".join(_b64(item) for item in value["BinaryListValues"])
    return None


def to_received_message(raw: Mapping[str, Any]) -> ReceivedMessage:
    """Custom attributes first (by name), then system attributes (by name)."""
    system = raw.get("Attributes") or {}
    custom = raw.get("MessageAttributes") or {}

    attributes = []
    for name in sorted(custom):
        flattened = flatten_message_attribute(custom[name])
        if flattened is not None:
            attributes.append(MessageAttribute(name=name, value=flattened))
    for name in sorted(system):
        attributes.append(MessageAttribute(name=name, value=format_system_attribute(name, system[name])))

    return ReceivedMessage(
        id=raw.get("MessageId", ""),
        body=raw.get("Body", ""),
        receipt_handle=raw.get("ReceiptHandle", ""),
        receive_count=parse_count(system.get(APPROXIMATE_RECEIVE_COUNT)),
        attributes=attributes,
    )


def _b64(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode()
    return base64.b64encode(data).decode("ascii")
