#!/usr/bin/env python3
"""
Demo script: create a few queues and messages so the console has something to show.
Run against LocalStack: python scripts/seed_queues.py --endpoint http://localhost:4566
Run against ElasticMQ:  python scripts/seed_queues.py --endpoint http://localhost:9324
"""
import argparse
import os
import sys
import uuid

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "services"))

from queue_service.repository import SqsRepository  # noqa: E402
from queue_service.service import QueueService  # noqa: E402
from shared.config import ConsoleSettings  # noqa: E402
from shared.errors import ConsoleError  # noqa: E402
from shared.logger import get_logger  # noqa: E402
from shared.models import CreateQueueInput, MessageAttribute, SendMessageInput  # noqa: E402
from shared.sqs_client import get_sqs_client  # noqa: E402

logger = get_logger("seed_queues")

DEMO_QUEUES = [
    CreateQueueInput(name="orders", type="standard", visibility_timeout=60),
    CreateQueueInput(name="payments", type="fifo", content_based_deduplication=True),
    CreateQueueInput(name="notifications", delay_seconds=5),
]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--endpoint", default=os.environ.get("SQS_ENDPOINT_URL", "http://localhost:4566"))
    parser.add_argument("--region", default=os.environ.get("AWS_REGION", "us-east-1"))
    parser.add_argument("--messages", type=int, default=3, help="messages per queue")
    args = parser.parse_args(argv)

    settings = ConsoleSettings(
        endpoint_url=args.endpoint,
        region=args.region,
        access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "test"),
        secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "test"),
    )
    service = QueueService(SqsRepository(get_sqs_client(settings)))

    for request in DEMO_QUEUES:
        try:
            queue_url = service.create_queue(request).queue_url
        except ConsoleError as e:
            logger.error("Could not create queue", extra={"queue": request.name, "error": str(e)})
            return 1
        print(f"Created {queue_url}")

        for i in range(args.messages):
            try:
                service.send_message(SendMessageInput(
                    queue_url=queue_url,
                    body=f'{{"demo": true, "seq": {i}}}',
                    message_group_id="demo" if queue_url.endswith(".fifo") else "",
                    attributes=[
                        MessageAttribute(name="source", value="seed_queues"),
                        MessageAttribute(name="trace_id", value=uuid.uuid4().hex),
                    ],
                ))
            except ConsoleError as e:
                logger.error("Could not send message", extra={"queue_url": queue_url, "error": str(e)})
                return 1
        print(f"  sent {args.messages} message(s)")

    try:
        queues = service.list_queues()
    except ConsoleError as e:
        logger.error("Could not list queues", extra={"error": str(e)})
        return 1

    print("\nQueues now visible to the console:")
    for queue in queues:
        print(f"  {queue.name:<20} {queue.type.label:<8} available={queue.messages_available}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
