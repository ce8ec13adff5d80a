"""
SQS client factory.

The repository only needs something that quacks like a boto3 SQS client, so
tests hand it a moto-backed client or a mock and production hands it this.
Retries are left to the caller: the console surfaces failures immediately.
"""
from __future__ import annotations

import logging

import boto3
import botocore.config

from shared.config import ConsoleSettings

logger = logging.getLogger(__name__)


def client_config(settings: ConsoleSettings) -> botocore.config.Config:
    return botocore.config.Config(
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
        retries={"max_attempts": settings.max_attempts, "mode": "standard"},
    )


def get_sqs_client(settings: ConsoleSettings | None = None):
    settings = settings or ConsoleSettings.from_env()
    if settings.is_local:
        logger.info("Using SQS endpoint %s", settings.endpoint_url)

    return boto3.client(
        "sqs",
        endpoint_url=settings.endpoint_url,
        region_name=settings.region,
        aws_access_key_id=settings.access_key_id,
        aws_secret_access_key=settings.secret_access_key,
        aws_session_token=settings.session_token,
        config=client_config(settings),
    )
