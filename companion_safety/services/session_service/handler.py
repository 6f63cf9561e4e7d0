"""Session Service HTTP handler.

Wraps the session tracker for the companion chat UI. User messages are
classified before they are recorded, and every response carries the
escalation policy's current decisions so the UI can surface resources
or a break prompt.

Safety monitoring is advisory: unknown sessions answer 404, audit
failures never surface to the caller, and a message the store cannot
record still gets its classification and crisis resources back.
"""
import logging
import os
from typing import Optional

from flask import Flask, jsonify, request

from companion_safety.services.audit_service import (
    AuditSink,
    InMemoryAuditSink,
    KinesisAuditSink,
)
from companion_safety.services.safety_service import (
    classify,
    get_crisis_resources,
    is_dismissing_crisis,
)
from companion_safety.shared.database import get_connection_manager
from companion_safety.shared.models import AISession, MessageRole, RequestMeta
from companion_safety.shared.utils import configure_pii_salt, load_pii_salt
from .config import SessionServiceConfig, SessionThresholds
from .policy import should_escalate_crisis, should_show_break_reminder, should_warn_session_length
from .postgres_store import PostgresSessionStore
from .store import InMemorySessionStore, SessionStore, SessionStoreError
from .tracker import SessionTracker

logger = logging.getLogger(__name__)

app = Flask(__name__)

configure_pii_salt(load_pii_salt())

config = SessionServiceConfig.from_env()
thresholds = SessionThresholds.from_env()


def _build_store(service_config: SessionServiceConfig) -> SessionStore:
    if service_config.store_backend == "postgres":
        store = PostgresSessionStore(get_connection_manager())
        store.ensure_schema()
        return store
    return InMemorySessionStore()


def _build_audit_sink(service_config: SessionServiceConfig) -> AuditSink:
    if service_config.audit_backend == "kinesis":
        return KinesisAuditSink(
            stream_name=service_config.audit_stream_name,
            enabled=service_config.audit_enabled,
        )
    return InMemoryAuditSink()


tracker = SessionTracker(
    store=_build_store(config),
    audit_sink=_build_audit_sink(config),
)


def _request_meta() -> RequestMeta:
    forwarded = request.headers.get("X-Forwarded-For", "")
    ip_address = forwarded.split(",")[0].strip() if forwarded else request.remote_addr
    return RequestMeta(
        ip_address=ip_address,
        user_agent=request.headers.get("User-Agent"),
    )


def _decisions(session: AISession) -> dict:
    return {
        "should_show_break_reminder": should_show_break_reminder(session, thresholds),
        "should_escalate_crisis": should_escalate_crisis(session, thresholds),
        "should_warn_session_length": should_warn_session_length(session, thresholds),
    }


def _not_found(session_id: str):
    return jsonify({"error": "Session not found", "session_id": session_id}), 404


def _session_body(session: AISession) -> dict:
    body = session.to_dict()
    body.update(_decisions(session))
    return body


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint for the load balancer."""
    return jsonify({
        "status": "healthy",
        "service": "session-service",
        "store_backend": config.store_backend,
        "audit_backend": config.audit_backend,
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check - verifies the session database when it is in use."""
    if config.store_backend != "postgres":
        return jsonify({"status": "ready"}), 200

    database = get_connection_manager().health_check()
    if not database["healthy"]:
        return jsonify({"status": "not_ready", "reason": "database_unavailable"}), 503
    return jsonify({"status": "ready", "database": database}), 200


@app.route("/sessions", methods=["POST"])
def start_session():
    """Start a companion session.

    Request Body:
        {"user_id": "...", "subject_id": "..."}
    """
    data = request.get_json(silent=True) or {}
    user_id = data.get("user_id")
    subject_id = data.get("subject_id")
    if not user_id or not subject_id:
        logger.warning("START_SESSION_INVALID", extra={"reason": "missing_fields"})
        return jsonify({"error": "Missing required fields: user_id, subject_id"}), 400

    session = tracker.start_session(user_id, subject_id, _request_meta())
    return jsonify(_session_body(session)), 201


@app.route("/sessions/<session_id>", methods=["GET"])
def get_session(session_id: str):
    session = tracker.get_session(session_id)
    if session is None:
        return _not_found(session_id)
    return jsonify(_session_body(session)), 200


def _unrecorded_body(crisis_result, content, role: MessageRole, region: str) -> dict:
    # Classification still reaches the chat when the session write fails
    body = {
        "message_id": None,
        "recorded": False,
        "crisis": crisis_result.to_dict() if crisis_result else None,
        "is_dismissing": role == MessageRole.USER and is_dismissing_crisis(content),
    }
    if crisis_result and crisis_result.is_crisis_event:
        body["resources"] = [r.to_dict() for r in get_crisis_resources(region)]
    return body


@app.route("/sessions/<session_id>/messages", methods=["POST"])
def add_message(session_id: str):
    """Record a message, classifying it first if the user wrote it.

    Request Body:
        {
            "role": "user" | "assistant",
            "content": "...",
            "region": "US" (optional, for crisis resources)
        }

    Response (201; 202 with "recorded": false and no session
    decisions if the session write failed):
        {
            "message_id": "...",
            "recorded": true,
            "message_number": 3,
            "crisis": {...} | null,
            "is_dismissing": false,
            "should_show_break_reminder": false,
            "should_escalate_crisis": false,
            "should_warn_session_length": false,
            "resources": [...] (tier 1-2 or escalation only)
        }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Request body required"}), 400

    try:
        role = MessageRole(data.get("role", MessageRole.USER.value))
    except ValueError:
        return jsonify({"error": "role must be 'user' or 'assistant'"}), 400

    content = data.get("content")
    region: Optional[str] = data.get("region") or config.default_region

    crisis_result = classify(content) if role == MessageRole.USER else None

    try:
        message = tracker.add_message(
            session_id,
            role,
            content,
            crisis_result=crisis_result,
            request_meta=_request_meta(),
        )
    except SessionStoreError as e:
        logger.critical(
            "ADD_MESSAGE_NOT_RECORDED",
            extra={
                "session_id": session_id,
                "error": str(e),
                "error_type": type(e).__name__,
                "crisis_tier": int(crisis_result.tier) if crisis_result else None,
            }
        )
        return jsonify(_unrecorded_body(crisis_result, content, role, region)), 202

    if message is None:
        session = tracker.get_session(session_id)
        if session is None:
            return _not_found(session_id)
        return jsonify({"error": "Session has ended", "session_id": session_id}), 409

    session = tracker.get_session(session_id)
    decisions = _decisions(session)
    body = {
        "message_id": message.message_id,
        "recorded": True,
        "message_number": session.message_count,
        "crisis": crisis_result.to_dict() if crisis_result else None,
        "is_dismissing": role == MessageRole.USER and is_dismissing_crisis(content),
    }
    body.update(decisions)

    if (crisis_result and crisis_result.is_crisis_event) or decisions["should_escalate_crisis"]:
        body["resources"] = [r.to_dict() for r in get_crisis_resources(region)]

    return jsonify(body), 201


@app.route("/sessions/<session_id>/break-reminder", methods=["POST"])
def mark_break_reminder(session_id: str):
    tracker.mark_break_reminder_shown(session_id)
    return _flag_response(session_id)


@app.route("/sessions/<session_id>/resources-shown", methods=["POST"])
def mark_resources_shown(session_id: str):
    tracker.mark_resources_shown(session_id)
    return _flag_response(session_id)


@app.route("/sessions/<session_id>/crisis-handled", methods=["POST"])
def mark_crisis_handled(session_id: str):
    tracker.mark_crisis_handled(session_id)
    return _flag_response(session_id)


def _flag_response(session_id: str):
    session = tracker.get_session(session_id)
    if session is None:
        return _not_found(session_id)
    return jsonify({
        "session_id": session_id,
        "break_reminder_shown": session.break_reminder_shown,
        "second_break_reminder_shown": session.second_break_reminder_shown,
        "resources_shown": session.resources_shown,
        "crisis_handled": session.crisis_handled,
    }), 200


@app.route("/sessions/<session_id>/end", methods=["POST"])
def end_session(session_id: str):
    session = tracker.end_session(session_id, _request_meta())
    if session is None:
        return _not_found(session_id)
    return jsonify({
        "session_id": session_id,
        "ended_at": session.ended_at.isoformat(),
        "duration_seconds": session.duration_seconds,
        "message_count": session.message_count,
        "crisis_detected": session.crisis_detected,
    }), 200


@app.route("/users/<user_id>/session-stats", methods=["GET"])
def session_stats(user_id: str):
    stats = tracker.get_session_stats(user_id, request.args.get("subject_id"))
    return jsonify(stats.to_dict()), 200


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    port = int(os.getenv("PORT", "8002"))
    app.run(host="0.0.0.0", port=port, debug=False)
