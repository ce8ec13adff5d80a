"""
Pytest configuration and shared fixtures.
Unit tests use moto (SQS mocked in-process) or a MagicMock provider double.
Integration tests use LocalStack / ElasticMQ (real service emulation via Docker).
"""
import os
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from queue_service.repository import SqsRepository
from queue_service.service import QueueService

# Point the console at LocalStack when running integration tests
LOCALSTACK_ENDPOINT = os.environ.get("LOCALSTACK_ENDPOINT", "http://localhost:4566")
USE_LOCALSTACK = os.environ.get("USE_LOCALSTACK", "false").lower() == "true"

SQS_METHODS = [
    "list_queues", "get_queue_attributes", "set_queue_attributes", "create_queue",
    "list_queue_tags", "tag_queue", "delete_queue", "purge_queue",
    "send_message", "receive_message", "delete_message",
]


@pytest.fixture(autouse=True)
def aws_env(monkeypatch):
    """Set fake AWS credentials so boto3 doesn't error in tests."""
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "test")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "test")
    monkeypatch.delenv("AWS_REGION", raising=False)
    monkeypatch.delenv("AWS_SESSION_TOKEN", raising=False)
    monkeypatch.delenv("SQS_ENDPOINT_URL", raising=False)
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)


@pytest.fixture
def sqs_client(aws_env):
    """An in-process SQS (moto). Faster than LocalStack — no Docker required."""
    with mock_aws():
        yield boto3.client("sqs", region_name="us-east-1")


@pytest.fixture
def repository(sqs_client):
    return SqsRepository(sqs_client)


@pytest.fixture
def service(repository):
    return QueueService(repository)


@pytest.fixture
def provider():
    """
    Provider double standing in for the boto3 SQS client.
    spec= keeps typos from silently passing; method_calls == [] proves
    nothing reached the provider.
    """
    return MagicMock(spec=SQS_METHODS)


@pytest.fixture
def mocked_service(provider):
    return QueueService(SqsRepository(provider))


def client_error(operation: str, code: str = "InternalError", message: str = "boom") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)
