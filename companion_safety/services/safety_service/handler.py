"""Safety Service HTTP handler.

Stateless classification endpoint for the companion chat. The chat
service posts each user message here and attaches the result to the
message it records on the session.

Classification is advisory: on any internal error the endpoint answers
tier 0 with an error flag so the conversation is never blocked.
"""
import logging
import os

from flask import Flask, jsonify, request

from companion_safety.shared.models import CrisisTier
from .classifier import CrisisClassifier
from .resources import get_crisis_resources
from .rules import SafetyServiceConfig

logger = logging.getLogger(__name__)

app = Flask(__name__)

config = SafetyServiceConfig.from_env()
classifier = CrisisClassifier(ruleset_version=config.ruleset_version)


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint for the load balancer."""
    return jsonify({
        "status": "healthy",
        "service": "safety-service",
        "ruleset_version": config.ruleset_version,
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check - verifies the classifier is initialized."""
    if classifier is None:
        return jsonify({"status": "not_ready", "reason": "classifier_not_initialized"}), 503
    return jsonify({"status": "ready"}), 200


@app.route("/classify", methods=["POST"])
def classify_message():
    """Classify one message for crisis indicators.

    Request Body:
        {
            "message": "User message text",
            "region": "US" (optional, resources for tier 1-2)
        }

    Response:
        {
            "tier": 0-3,
            "matched_rule_ids": [...],
            "action": "none" | "log" | "offer_resources" | "show_resources",
            "suggested_response": "..." | null,
            "is_dismissing": true | false,
            "resources": [...] (only for tier 1-2)
        }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        logger.warning("CLASSIFY_REQUEST_INVALID", extra={"reason": "empty_body"})
        return jsonify({"error": "Request body required"}), 400

    if "message" not in data:
        logger.warning("CLASSIFY_REQUEST_INVALID", extra={"reason": "missing_message"})
        return jsonify({"error": "Missing required field: message"}), 400

    message = data.get("message")
    region = data.get("region") or config.default_region

    try:
        result = classifier.classify(message)
        body = result.to_dict()
        body["is_dismissing"] = classifier.is_dismissing_crisis(message)
        if result.tier in (CrisisTier.IMMEDIATE, CrisisTier.HIGH):
            body["resources"] = [r.to_dict() for r in get_crisis_resources(region)]
        body["ruleset_version"] = config.ruleset_version
        return jsonify(body), 200

    except Exception as e:
        logger.error(
            "CLASSIFY_ERROR",
            extra={
                "error": str(e),
                "error_type": type(e).__name__,
                "action": "DEFAULTING_TO_TIER_0",
            }
        )
        return jsonify({
            "tier": 0,
            "matched_rule_ids": [],
            "action": "none",
            "suggested_response": None,
            "is_dismissing": False,
            "error": "Classifier error - message not classified",
            "ruleset_version": config.ruleset_version,
        }), 200


@app.route("/resources", methods=["GET"])
def resources():
    """Crisis resources for a region, primary resource first."""
    region = request.args.get("region") or config.default_region
    return jsonify({
        "region": region.upper(),
        "resources": [r.to_dict() for r in get_crisis_resources(region)],
    }), 200


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    port = int(os.getenv("PORT", "8001"))
    app.run(host="0.0.0.0", port=port, debug=False)
