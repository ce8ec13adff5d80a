"""
SQS Console — local management UI for SQS-compatible queues
Works against AWS SQS, ElasticMQ or LocalStack.

Usage:
  SQS_ENDPOINT_URL=http://localhost:4566 streamlit run console.py   # LocalStack
  SQS_ENDPOINT_URL=http://localhost:9324 streamlit run console.py   # ElasticMQ
"""
import json
from typing import Mapping, MutableMapping

import streamlit as st

from queue_service.repository import SqsRepository
from queue_service.service import QueueService
from shared.config import ConsoleSettings
from shared.context import OperationContext
from shared.errors import ConsoleError
from shared.logger import get_logger
from shared.models import (
    CreateQueueInput, DeleteMessageInput, MessageAttribute, QueueType, ReceiveMessagesInput,
    SendMessageInput,
)
from shared.sqs_client import get_sqs_client

logger = get_logger("console")

# ── Config ─────────────────────────────────────────────────────────────────
SETTINGS = ConsoleSettings.from_env()
PAGE_TIMEOUT_SECONDS = 10
RECEIVE_TIMEOUT_SECONDS = 30   # long poll is capped at 20s


@st.cache_resource
def _service() -> QueueService:
    return QueueService(SqsRepository(get_sqs_client(SETTINGS)))


def _ctx(seconds: float = PAGE_TIMEOUT_SECONDS) -> OperationContext:
    return OperationContext.with_timeout(seconds)


def _fmt_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S UTC") if value else "—"


def _flash(kind: str, message: str) -> None:
    st.session_state["flash"] = (kind, message)


def _show_flash() -> None:
    flash = st.session_state.pop("flash", None)
    if flash:
        kind, message = flash
        (st.success if kind == "ok" else st.error)(message)


# ── Pages ──────────────────────────────────────────────────────────────────
def queues_page() -> None:
    st.subheader("📋 Queues")
    try:
        queues = _service().list_queues(_ctx())
    except ConsoleError as e:
        st.error(f"Could not list queues: {e}")
        return

    if not queues:
        st.info("No queues yet — create one from the sidebar.")
        return

    rows = [
        {
            "Name":        q.name,
            "Type":        q.type.label,
            "Created":     _fmt_time(q.created_at),
            "Available":   q.messages_available,
            "In flight":   q.messages_in_flight,
            "Encryption":  q.encryption,
            "Content dedup": "Enabled" if q.content_based_deduplication else "Disabled",
        }
        for q in queues
    ]
    st.dataframe(rows, use_container_width=True, hide_index=True)

    names = {q.name: q.url for q in queues}
    chosen = st.selectbox("Open queue", list(names))
    if st.button("Open", type="primary"):
        st.session_state["queue_url"] = names[chosen]
        st.session_state["page"] = "Queue detail"
        st.rerun()


def create_queue_page() -> None:
    st.subheader("➕ Create Queue")
    with st.form("create-queue"):
        name       = st.text_input("Queue name")
        queue_type = st.radio("Type", [QueueType.STANDARD.value, QueueType.FIFO.value],
                              format_func=lambda v: QueueType(v).label, horizontal=True)
        delay      = st.text_input("Delay seconds (0–900)")
        retention  = st.text_input("Message retention period (60–1209600)")
        visibility = st.text_input("Visibility timeout (0–43200)")
        dedup      = st.checkbox("Content-based deduplication (FIFO only)")
        submitted  = st.form_submit_button("Create", type="primary")

    if not submitted:
        return

    try:
        result = _service().create_queue(
            CreateQueueInput(
                name=name,
                type=queue_type,
                delay_seconds=_optional_int(delay, "Delay seconds"),
                message_retention_period=_optional_int(retention, "Message retention period"),
                visibility_timeout=_optional_int(visibility, "Visibility timeout"),
                content_based_deduplication=dedup,
            ),
            _ctx(),
        )
    except (ConsoleError, ValueError) as e:
        st.error(str(e))
        return

    _flash("ok", f"Queue created: {result.queue_url}")
    st.session_state["queue_url"] = result.queue_url
    st.session_state["page"] = "Queue detail"
    st.rerun()


def queue_detail_page(queue_url: str) -> None:
    try:
        detail = _service().queue_detail(queue_url, _ctx())
    except ConsoleError as e:
        st.error(f"Could not load queue: {e}")
        return

    st.subheader(f"📦 {detail.name}")
    st.caption(detail.url)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Type", detail.type.label)
    c2.metric("Available", detail.messages_available)
    c3.metric("In flight", detail.messages_in_flight)
    c4.metric("Encryption", detail.encryption)
    st.caption(f"ARN `{detail.arn or '—'}` · created {_fmt_time(detail.created_at)} · "
               f"modified {_fmt_time(detail.last_modified_at)}")

    left, right = st.columns(2)
    with left:
        st.markdown("**Attributes**")
        st.dataframe([{"Name": k, "Value": v} for k, v in sorted(detail.attributes.items())],
                     use_container_width=True, hide_index=True)
    with right:
        st.markdown("**Tags**")
        if detail.tags:
            st.dataframe([{"Key": k, "Value": v} for k, v in sorted(detail.tags.items())],
                         use_container_width=True, hide_index=True)
        else:
            st.caption("No tags.")

    st.divider()
    send_receive_panel(detail.url, detail.is_fifo, detail.content_based_deduplication)

    st.divider()
    st.markdown("**Danger zone**")
    confirm = st.checkbox("I understand purge and delete cannot be undone")
    b1, b2 = st.columns(2)
    if b1.button("🧹 Purge queue", disabled=not confirm, use_container_width=True):
        _run_and_flash(lambda: _service().purge_queue(queue_url, _ctx()), "Queue purged.")
        st.rerun()
    if b2.button("🗑️ Delete queue", disabled=not confirm, use_container_width=True):
        if _run_and_flash(lambda: _service().delete_queue(queue_url, _ctx()), "Queue deleted."):
            st.session_state.pop("queue_url", None)
            st.session_state["page"] = "Queues"
        st.rerun()


def send_receive_panel(queue_url: str, fifo: bool, content_dedup: bool) -> None:
    send_col, receive_col = st.columns(2)

    with send_col:
        st.markdown("**✉️ Send message**")
        with st.form("send-message", clear_on_submit=True):
            body     = st.text_area("Body")
            group_id = st.text_input("Message group id", disabled=not fifo)
            dedup_id = st.text_input("Deduplication id", disabled=not fifo or content_dedup)
            delay    = st.text_input("Delay seconds (0–900)")
            raw_attrs = st.text_area("Attributes (JSON object of name → value)", value="{}")
            send = st.form_submit_button("Send", type="primary")

        if send:
            try:
                attrs = json.loads(raw_attrs or "{}")
                if not isinstance(attrs, dict):
                    raise ValueError("Attributes must be a JSON object")
                _service().send_message(
                    SendMessageInput(
                        queue_url=queue_url,
                        body=body,
                        message_group_id=group_id,
                        message_deduplication_id=dedup_id,
                        delay_seconds=_optional_int(delay, "Delay seconds"),
                        attributes=[MessageAttribute(name=k, value=str(v)) for k, v in attrs.items()],
                    ),
                    _ctx(),
                )
                st.success("Message sent successfully.")
            except (ConsoleError, ValueError) as e:
                st.error(str(e))

    with receive_col:
        st.markdown("**📥 Receive messages**")
        max_messages = st.number_input("Max messages", min_value=1, max_value=10, value=10)
        wait_time    = st.number_input("Wait time seconds", min_value=0, max_value=20, value=0)
        if st.button("Poll", use_container_width=True):
            try:
                result = _service().receive_messages(
                    ReceiveMessagesInput(queue_url=queue_url, max_messages=int(max_messages),
                                         wait_time_seconds=int(wait_time)),
                    _ctx(RECEIVE_TIMEOUT_SECONDS),
                )
                remember_received(st.session_state, queue_url, [m.model_dump() for m in result.messages])
            except ConsoleError as e:
                st.error(str(e))

        received = received_for(st.session_state, queue_url)
        if not received:
            st.caption("Nothing received yet.")
        for i, message in enumerate(received):
            with st.expander(f"{message['id']} · received {message['receive_count']}×"):
                st.code(message["body"])
                for attribute in message["attributes"]:
                    st.caption(f"{attribute['name']} = {attribute['value']}")
                if st.button("Delete", key=f"delete-{i}"):
                    ok = _run_and_flash(
                        lambda: _service().delete_message(
                            DeleteMessageInput(queue_url=queue_url, receipt_handle=message["receipt_handle"]),
                            _ctx(),
                        ),
                        "Message deleted successfully.",
                    )
                    if ok:
                        forget_received(st.session_state, queue_url, message["receipt_handle"])
                    st.rerun()


# ── Received messages ──────────────────────────────────────────────────────
# Receipt handles only work against the queue that issued them, so polled
# messages are stored under their queue URL and only the latest queue is kept.
def remember_received(state: MutableMapping, queue_url: str, messages: list[dict]) -> None:
    state["received"] = {queue_url: messages}


def received_for(state: Mapping, queue_url: str) -> list[dict]:
    return state.get("received", {}).get(queue_url, [])


def forget_received(state: MutableMapping, queue_url: str, receipt_handle: str) -> None:
    remaining = [m for m in received_for(state, queue_url) if m["receipt_handle"] != receipt_handle]
    remember_received(state, queue_url, remaining)


# ── Helpers ────────────────────────────────────────────────────────────────
def _optional_int(raw: str, label: str):
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{label} must be a whole number") from None


def _run_and_flash(action, success: str) -> bool:
    try:
        action()
    except ConsoleError as e:
        logger.warning("Console action failed", extra={"error": str(e)})
        _flash("error", str(e))
        return False
    _flash("ok", success)
    return True


# ── Page layout ────────────────────────────────────────────────────────────
def main() -> None:
    st.set_page_config(page_title="SQS Console", page_icon="📨", layout="wide")
    st.title("📨 SQS Console")
    st.caption(f"Endpoint `{SETTINGS.endpoint_url or 'AWS default'}` · region `{SETTINGS.region}`")
    _show_flash()

    with st.sidebar:
        st.header("⚙️ Navigation")
        pages = ["Queues", "Create queue", "Queue detail"]
        st.session_state.setdefault("page", "Queues")
        page = st.radio("Page", pages, index=pages.index(st.session_state["page"]))
        st.session_state["page"] = page

        if st.button("🔄 Refresh", use_container_width=True):
            st.rerun()

    if page == "Queues":
        queues_page()
    elif page == "Create queue":
        create_queue_page()
    else:
        queue_url = st.session_state.get("queue_url")
        if queue_url:
            queue_detail_page(queue_url)
        else:
            st.info("Pick a queue on the Queues page first.")


# streamlit runs the script as __main__; importing it (tests) renders nothing
if __name__ == "__main__":
    main()
