"""
Unit tests for configuration, the SQS client factory and JSON logging.
"""
import json
import logging
import sys

import pytest

from shared.config import ConsoleSettings
from shared.context import OperationContext
from shared.logger import _JsonFormatter, configure_logging
from shared.sqs_client import client_config, get_sqs_client


# ---------------------------------------------------------------------------
# ConsoleSettings
# ---------------------------------------------------------------------------

def test_defaults_with_empty_environment():
    settings = ConsoleSettings.from_env({})

    assert settings.endpoint_url is None
    assert settings.region == "us-east-1"
    assert settings.connect_timeout == 5
    assert settings.read_timeout == 30
    assert settings.max_attempts == 1
    assert settings.is_local is False


def test_sqs_endpoint_wins_over_generic_endpoint():
    settings = ConsoleSettings.from_env({
        "SQS_ENDPOINT_URL": "http://localhost:9324",
        "AWS_ENDPOINT_URL": "http://localhost:4566",
    })
    assert settings.endpoint_url == "http://localhost:9324"
    assert settings.is_local


def test_region_and_credentials_from_env():
    settings = ConsoleSettings.from_env({
        "AWS_ENDPOINT_URL": " http://localhost:4566 ",
        "AWS_DEFAULT_REGION": "eu-west-1",
        "AWS_ACCESS_KEY_ID": "key",
        "AWS_SECRET_ACCESS_KEY": "secret",
        "SQS_READ_TIMEOUT": "45",
    })
    assert settings.endpoint_url == "http://localhost:4566"
    assert settings.region == "eu-west-1"
    assert settings.access_key_id == "key"
    assert settings.secret_access_key == "secret"
    assert settings.read_timeout == 45


def test_aws_region_wins_over_default_region():
    settings = ConsoleSettings.from_env({"AWS_REGION": "ap-south-1", "AWS_DEFAULT_REGION": "eu-west-1"})
    assert settings.region == "ap-south-1"


def test_non_integer_timeout_is_rejected():
    with pytest.raises(ValueError, match="SQS_CONNECT_TIMEOUT"):
        ConsoleSettings.from_env({"SQS_CONNECT_TIMEOUT": "fast"})


def test_from_env_reads_process_environment(monkeypatch):
    monkeypatch.setenv("SQS_ENDPOINT_URL", "http://localhost:4566")
    assert ConsoleSettings.from_env().endpoint_url == "http://localhost:4566"


# ---------------------------------------------------------------------------
# Client factory
# ---------------------------------------------------------------------------

def test_client_config_carries_timeouts_and_retries():
    config = client_config(ConsoleSettings(connect_timeout=2, read_timeout=25, max_attempts=3))

    assert config.connect_timeout == 2
    assert config.read_timeout == 25
    assert config.retries == {"max_attempts": 3, "mode": "standard"}


def test_client_targets_configured_endpoint_and_region():
    client = get_sqs_client(ConsoleSettings(
        endpoint_url="http://localhost:4566",
        region="eu-central-1",
        access_key_id="test",
        secret_access_key="test",
    ))

    assert client.meta.endpoint_url == "http://localhost:4566"
    assert client.meta.region_name == "eu-central-1"


# ---------------------------------------------------------------------------
# OperationContext
# ---------------------------------------------------------------------------

def test_context_without_deadline_calls_inline():
    ctx = OperationContext()
    assert ctx.remaining() is None
    assert ctx.run(lambda **kw: kw, a=1) == {"a": 1}


def test_context_from_object_without_remaining_time():
    assert OperationContext.from_lambda_context(None).deadline is None


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

def test_json_formatter_includes_extras_and_exceptions():
    logger = logging.getLogger("queue_service.test")
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logger.makeRecord(
            logger.name, logging.ERROR, __file__, 1, "failed %s", ("here",), exc_info=sys.exc_info(),
            extra={"queue_url": "http://q"},
        )

    entry = json.loads(_JsonFormatter().format(record))

    assert entry["level"] == "ERROR"
    assert entry["logger"] == "queue_service.test"
    assert entry["message"] == "failed here"
    assert entry["queue_url"] == "http://q"
    assert "RuntimeError: boom" in entry["exception"]


def test_configure_logging_quiets_botocore():
    configure_logging("DEBUG")
    try:
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("botocore").level == logging.WARNING
    finally:
        configure_logging("INFO")
