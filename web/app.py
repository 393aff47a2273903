"""
Flask JSON API for Metric Watch.

API endpoints (every one except /api/health needs an API token):
  POST   /api/metrics            — Ingest a sample and evaluate alert rules
  GET    /api/alerts             — List the caller's alert rules
  POST   /api/alerts             — Create a rule
  GET    /api/alerts/<id>        — Fetch one rule
  PATCH  /api/alerts/<id>        — Partially update a rule
  DELETE /api/alerts/<id>        — Delete a rule (its events are kept)
  GET    /api/alert-events       — Cursor-paginated firing history
  GET    /api/metric-names       — Known metric names, for autocomplete
  GET    /api/health             — Liveness probe

Started via: python main.py web [--port 5000] [--host 127.0.0.1]
"""
import logging

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from utils.errors import MetricWatchError, StorageError, Unauthenticated, ValidationError

logger = logging.getLogger("metricwatch.web.app")


def create_app(config: dict, engines: dict) -> Flask:
    """
    Factory function. Receives initialized engines from main.py CLI.

    Args:
        config: Application config dict
        engines: dict of initialized engine objects (db, monitor, rules, events, auth)
    """
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.get("web", {}).get("max_body_bytes", 64 * 1024)

    monitor = engines["monitor"]
    rules = engines["rules"]
    events = engines["events"]
    auth = engines["auth"]

    # ─── Helpers ─────────────────────────────────────────

    def current_user():
        user_id = auth.resolve(request)
        if not user_id:
            raise Unauthenticated()
        return user_id

    def json_body():
        body = request.get_json(force=True, silent=True)
        if body is None:
            raise ValidationError("Invalid JSON body")
        return body

    # ─── Error Handling ──────────────────────────────────

    @app.errorhandler(MetricWatchError)
    def handle_error(e):
        if isinstance(e, StorageError):
            logger.error(f"{request.method} {request.path} failed: {e.message}")
            return jsonify({"error": "Internal server error"}), 500
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception(f"{request.method} {request.path} raised {type(e).__name__}")
        return jsonify({"error": "Internal server error"}), 500

    # ─── Routes ──────────────────────────────────────────

    @app.route("/api/health")
    def api_health():
        return jsonify({"status": "ok"})

    @app.route("/api/metrics", methods=["POST"])
    def api_ingest():
        user_id = current_user()
        summary = monitor.ingest_payload(user_id, json_body())
        return jsonify(summary.to_dict())

    @app.route("/api/alerts", methods=["GET"])
    def api_list_alerts():
        user_id = current_user()
        return jsonify({"alerts": [r.to_dict() for r in rules.list_rules(user_id)]})

    @app.route("/api/alerts", methods=["POST"])
    def api_create_alert():
        user_id = current_user()
        rule = rules.create_rule(user_id, json_body())
        return jsonify({"alert": rule.to_dict()}), 201

    @app.route("/api/alerts/<rule_id>", methods=["GET"])
    def api_get_alert(rule_id):
        user_id = current_user()
        return jsonify({"alert": rules.get_rule(user_id, rule_id).to_dict()})

    @app.route("/api/alerts/<rule_id>", methods=["PATCH"])
    def api_update_alert(rule_id):
        user_id = current_user()
        rule = rules.update_rule(user_id, rule_id, json_body())
        return jsonify({"alert": rule.to_dict()})

    @app.route("/api/alerts/<rule_id>", methods=["DELETE"])
    def api_delete_alert(rule_id):
        user_id = current_user()
        rules.delete_rule(user_id, rule_id)
        return "", 204

    @app.route("/api/alert-events")
    def api_alert_events():
        user_id = current_user()
        page = events.list_page(
            user_id,
            metric_name=request.args.get("metric_name"),
            alert_id=request.args.get("alert_id"),
            cursor=request.args.get("cursor"),
            limit=request.args.get("limit"),
        )
        return jsonify(page.to_dict())

    @app.route("/api/metric-names")
    def api_metric_names():
        user_id = current_user()
        names = monitor.list_metric_names(user_id, search=request.args.get("q"))
        return jsonify({"names": names})

    return app
