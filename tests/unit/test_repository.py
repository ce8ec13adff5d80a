"""
Unit tests for the queue repository: provider calls and normalisation.

Normalisation is tested against canned boto3-shaped responses; the happy
paths are also exercised against moto to make sure the request shapes are
ones a real SQS API accepts.
"""
from datetime import datetime, timezone

import pytest

from queue_service.repository import (
    RECEIVE_SYSTEM_ATTRIBUTE_NAMES, SqsRepository, build_queue_summary, flatten_message_attribute,
    format_system_attribute, parse_count, to_received_message,
)
from shared.errors import ProviderError
from shared.models import CreateQueueRequest, QueueType, ReceiveMessagesRequest, SendMessageRequest

URL = "https://sqs.us-east-1.amazonaws.com/123456789012"


# ---------------------------------------------------------------------------
# build_queue_summary
# ---------------------------------------------------------------------------

def test_summary_derives_fields_from_attributes():
    summary = build_queue_summary(f"{URL}/orders", {
        "CreatedTimestamp": "1700000000",
        "ApproximateNumberOfMessages": "12",
        "ApproximateNumberOfMessagesNotVisible": "3",
        "KmsMasterKeyId": "alias/aws/sqs",
    })

    assert summary.name == "orders"
    assert summary.type is QueueType.STANDARD
    assert summary.created_at == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
    assert summary.messages_available == 12
    assert summary.messages_in_flight == 3
    assert summary.encryption == "KMS"
    assert summary.content_based_deduplication is False


def test_summary_fifo_from_flag_or_suffix():
    assert build_queue_summary(f"{URL}/odd-name", {"FifoQueue": "true"}).type is QueueType.FIFO
    assert build_queue_summary(f"{URL}/jobs.fifo", {}).type is QueueType.FIFO
    assert build_queue_summary(f"{URL}/jobs", {"FifoQueue": "false"}).type is QueueType.STANDARD


def test_summary_tolerates_missing_and_malformed_values():
    summary = build_queue_summary(f"{URL}/orders", {
        "CreatedTimestamp": "yesterday",
        "ApproximateNumberOfMessages": "lots",
        "ApproximateNumberOfMessagesNotVisible": "-4",
        "KmsMasterKeyId": "",
    })

    assert summary.created_at is None
    assert summary.messages_available == 0
    assert summary.messages_in_flight == 0
    assert summary.encryption == "None"


def test_summary_name_without_slash_is_whole_url():
    assert build_queue_summary("orders", {}).name == "orders"


@pytest.mark.parametrize("raw, expected", [(None, 0), ("", 0), ("7", 7), ("x", 0), ("-1", 0)])
def test_parse_count(raw, expected):
    assert parse_count(raw) == expected


# ---------------------------------------------------------------------------
# Message normalisation
# ---------------------------------------------------------------------------

def test_binary_attribute_is_base64_encoded():
    assert flatten_message_attribute({"DataType": "Binary", "BinaryValue": b"\x01\x02"}) == "AQI="


def test_list_valued_attributes_are_joined():
    assert flatten_message_attribute({"StringListValues": ["a", "b"]}) == "a, b"
    assert flatten_message_attribute({"BinaryListValues": [b"\x01", b"\x02"]}) == "AQ==, Ag=="


def test_empty_attribute_value_is_skipped():
    assert flatten_message_attribute({"DataType": "String"}) is None


def test_timestamps_are_rendered_as_iso8601():
    assert format_system_attribute("SentTimestamp", "1700000000123") == "2023-11-14T22:13:20Z"
    assert format_system_attribute("ApproximateFirstReceiveTimestamp", "0") == "1970-01-01T00:00:00Z"
    assert format_system_attribute("SentTimestamp", "soon") == "soon"
    assert format_system_attribute("SequenceNumber", "1700000000123") == "1700000000123"


def test_received_message_orders_custom_then_system_attributes():
    message = to_received_message({
        "MessageId": "m-1",
        "Body": "hello",
        "ReceiptHandle": "rh-1",
        "Attributes": {
            "SentTimestamp": "1700000000000",
            "ApproximateReceiveCount": "4",
            "MessageGroupId": "g",
        },
        "MessageAttributes": {
            "zeta": {"DataType": "String", "StringValue": "z"},
            "blob": {"DataType": "Binary", "BinaryValue": b"\x01\x02"},
            "alpha": {"DataType": "String", "StringValue": "a"},
        },
    })

    assert message.id == "m-1"
    assert message.body == "hello"
    assert message.receipt_handle == "rh-1"
    assert message.receive_count == 4
    assert [(a.name, a.value) for a in message.attributes] == [
        ("alpha", "a"),
        ("blob", "AQI="),
        ("zeta", "z"),
        ("ApproximateReceiveCount", "4"),
        ("MessageGroupId", "g"),
        ("SentTimestamp", "2023-11-14T22:13:20Z"),
    ]


def test_malformed_receive_count_defaults_to_zero():
    message = to_received_message({"MessageId": "m", "Attributes": {"ApproximateReceiveCount": "many"}})
    assert message.receive_count == 0


def test_receive_requests_all_attributes(provider):
    provider.receive_message.return_value = {"Messages": [
        {"MessageId": "m-1", "Body": "b", "ReceiptHandle": "rh",
         "MessageAttributes": {"bin": {"DataType": "Binary", "BinaryValue": b"\x01\x02"}}},
    ]}

    messages = SqsRepository(provider).receive_messages(
        ReceiveMessagesRequest(queue_url="u", max_messages=3, wait_time_seconds=0)
    )

    provider.receive_message.assert_called_once_with(
        QueueUrl="u",
        MaxNumberOfMessages=3,
        WaitTimeSeconds=0,
        VisibilityTimeout=0,
        MessageAttributeNames=["All"],
        MessageSystemAttributeNames=RECEIVE_SYSTEM_ATTRIBUTE_NAMES,
    )
    assert messages[0].attributes[0].value == "AQI="


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

def test_list_follows_next_token(provider):
    provider.list_queues.side_effect = [
        {"QueueUrls": [f"{URL}/b"], "NextToken": "page-2"},
        {"QueueUrls": [f"{URL}/a"]},
    ]
    provider.get_queue_attributes.return_value = {"Attributes": {}}

    queues = SqsRepository(provider).list_queues()

    assert [q.name for q in queues] == ["b", "a"]
    assert provider.list_queues.call_args_list[0].kwargs == {}
    assert provider.list_queues.call_args_list[1].kwargs == {"NextToken": "page-2"}


def test_list_requests_fifo_attributes_only_for_fifo_urls(provider):
    provider.list_queues.return_value = {"QueueUrls": [f"{URL}/plain", f"{URL}/ordered.fifo"]}
    provider.get_queue_attributes.return_value = {"Attributes": {"ContentBasedDeduplication": "true"}}

    plain, ordered = SqsRepository(provider).list_queues()

    plain_names = provider.get_queue_attributes.call_args_list[0].kwargs["AttributeNames"]
    fifo_names = provider.get_queue_attributes.call_args_list[1].kwargs["AttributeNames"]
    assert "FifoQueue" not in plain_names
    assert {"FifoQueue", "ContentBasedDeduplication"} <= set(fifo_names)
    assert ordered.type is QueueType.FIFO
    assert ordered.content_based_deduplication is True


def test_list_with_no_queues(provider):
    provider.list_queues.return_value = {}
    assert SqsRepository(provider).list_queues() == []
    provider.get_queue_attributes.assert_not_called()


# ---------------------------------------------------------------------------
# CreateQueue contract
# ---------------------------------------------------------------------------

def test_create_without_queue_url_is_a_provider_error(provider):
    provider.create_queue.return_value = {}

    with pytest.raises(ProviderError, match="does not contain QueueUrl") as exc_info:
        SqsRepository(provider).create_queue(CreateQueueRequest(name="orders"))
    assert exc_info.value.operation == "CreateQueue"


# ---------------------------------------------------------------------------
# Against moto
# ---------------------------------------------------------------------------

def test_moto_create_list_and_detail(repository, sqs_client):
    url = repository.create_queue(CreateQueueRequest(
        name="jobs.fifo",
        attributes={"FifoQueue": "true", "ContentBasedDeduplication": "true"},
    ))
    sqs_client.create_queue(QueueName="plain")
    sqs_client.tag_queue(QueueUrl=url, Tags={"team": "core"})

    by_name = {q.name: q for q in repository.list_queues()}
    assert set(by_name) == {"jobs.fifo", "plain"}
    assert by_name["jobs.fifo"].type is QueueType.FIFO
    assert by_name["jobs.fifo"].content_based_deduplication is True
    assert by_name["plain"].type is QueueType.STANDARD
    assert by_name["plain"].created_at is not None

    detail = repository.get_queue_detail(url)
    assert detail.url == url
    assert detail.arn.endswith(":jobs.fifo")
    assert detail.attributes["FifoQueue"] == "true"
    assert detail.tags == {"team": "core"}


def test_moto_send_receive_delete(repository, sqs_client):
    url = sqs_client.create_queue(QueueName="inbox")["QueueUrl"]

    message_id = repository.send_message(SendMessageRequest(
        queue_url=url, body="hello", attributes={"source": "test"},
    ))
    assert message_id

    assert repository.get_queue_detail(url).messages_available == 1

    [message] = repository.receive_messages(
        ReceiveMessagesRequest(queue_url=url, max_messages=10, wait_time_seconds=0)
    )
    assert message.id == message_id
    assert message.body == "hello"
    assert message.attributes[0].name == "source"
    assert message.attributes[0].value == "test"

    repository.delete_message(url, message.receipt_handle)
    assert repository.get_queue_detail(url).messages_available == 0


def test_moto_set_attributes_purge_and_delete(repository, sqs_client):
    url = sqs_client.create_queue(QueueName="scratch")["QueueUrl"]
    sqs_client.send_message(QueueUrl=url, MessageBody="x")

    repository.set_queue_attributes(url, {"VisibilityTimeout": "45"})
    assert repository.get_queue_detail(url).attributes["VisibilityTimeout"] == "45"

    repository.purge_queue(url)
    assert repository.get_queue_detail(url).messages_available == 0

    repository.delete_queue(url)
    assert repository.list_queues() == []
