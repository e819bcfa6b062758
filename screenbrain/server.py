"""
HTTP surface for screenbrain.

Routes:
    POST /capture            multipart goal + image (+ agent_name); ?debug=1
    GET  /session            full SessionState
    POST /session/reset      replace state with the default
    POST /session/memo       {"memo": str, "mode": "append" | "replace"}
    POST /session/step       {"step_index": int}
    GET  /session/context    screenshot-analysis prompt block
    GET  /health             liveness + gateway availability

The session key for /session* comes from ?sid=, then the X-Sid header,
then the sid cookie.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass

from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

from .config import ScreenBrainConfig
from .errors import PayloadTooLarge, ScreenBrainError
from .llm_client import BaseLLMClient, init_client
from .pipeline.capture import CaptureOrchestrator, CaptureRequest, ImageUpload
from .session.context import build_screenshot_context
from .session.identity import resolve_request_key
from .session.store import SessionRegistry, SessionStore

logger = logging.getLogger(__name__)

UPLOAD_OVERHEAD_BYTES = 64 * 1024

api_bp = Blueprint("screenbrain", __name__)


@dataclass
class AppState:
    """Per-app collaborators, stored in app.extensions."""

    config: ScreenBrainConfig
    registry: SessionRegistry
    orchestrator: CaptureOrchestrator


def _state() -> AppState:
    return current_app.extensions["screenbrain"]


def _debug_requested() -> bool:
    return request.args.get("debug") == "1"


def _session_store() -> SessionStore:
    state = _state()
    server = state.config.server
    key = resolve_request_key(
        request.args.get("sid"),
        request.headers.get(server.header_name),
        request.cookies.get(server.cookie_name),
    )
    return state.registry.get(key)


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


# =============================================================================
# Routes
# =============================================================================


@api_bp.route("/capture", methods=["POST"])
def capture():
    state = _state()
    server = state.config.server
    debug = _debug_requested()

    upload = request.files.get("image")
    image = None
    if upload is not None:
        image = ImageUpload(
            data=upload.read(),
            mime_type=upload.mimetype,
            filename=upload.filename or None,
        )

    capture_request = CaptureRequest(
        goal=request.form.get("goal"),
        image=image,
        session_key_hint=request.form.get("agent_name"),
        stored_token=request.cookies.get(server.cookie_name),
    )

    try:
        result = state.orchestrator.capture(capture_request)
    except ScreenBrainError:
        raise
    except Exception as e:
        logger.exception("Unhandled capture failure")
        payload = {"ok": False, "error": "Internal error during capture.", "kind": "InternalError"}
        if debug:
            payload["error"] = str(e)
            payload["debug_trace"] = traceback.format_exc()
        return jsonify(payload), 502

    response = jsonify(result.to_payload(debug=debug))
    if result.identity.should_issue_token:
        response.set_cookie(
            server.cookie_name,
            result.identity.key,
            path="/",
            httponly=True,
            samesite="Lax",
        )
    return response


@api_bp.route("/session", methods=["GET"])
def get_session():
    session = _session_store().read()
    return jsonify({"ok": True, "session": session.model_dump(mode="json")})


@api_bp.route("/session/reset", methods=["POST"])
def reset_session():
    _session_store().reset()
    return jsonify({"ok": True})


@api_bp.route("/session/memo", methods=["POST"])
def write_memo():
    store = _session_store()
    body = _json_body()
    store.write_memo(body.get("memo"), body.get("mode", "replace"))
    return jsonify({"ok": True})


@api_bp.route("/session/step", methods=["POST"])
def set_step():
    store = _session_store()
    store.set_step(_json_body().get("step_index"))
    return jsonify({"ok": True})


@api_bp.route("/session/context", methods=["GET"])
def session_context():
    session = _session_store().read()
    return jsonify({"ok": True, "context": build_screenshot_context(session)})


@api_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"ok": True, "gateway_available": _state().orchestrator.gateway_available})


@api_bp.app_errorhandler(ScreenBrainError)
def handle_screenbrain_error(error: ScreenBrainError):
    logger.info(f"{request.method} {request.path} -> {error.status_code} {error.kind}: {error.message}")
    return jsonify(error.to_payload(include_debug=_debug_requested())), error.status_code


@api_bp.app_errorhandler(RequestEntityTooLarge)
def handle_request_too_large(error: RequestEntityTooLarge):
    limit = _state().config.capture.max_image_bytes
    return handle_screenbrain_error(PayloadTooLarge(f"File too large (max {limit // (1024 * 1024)}MB)."))


# =============================================================================
# App factory
# =============================================================================


def create_app(
    config: ScreenBrainConfig | None = None,
    client: BaseLLMClient | None = None,
    registry: SessionRegistry | None = None,
    init_gateway: bool = True,
) -> Flask:
    """
    Build the Flask application.

    Args:
        config: Configuration (default: ScreenBrainConfig.load())
        client: Model gateway client; built from config when omitted and
            init_gateway is True
        registry: Session registry (default: one rooted at storage.sessions_dir)
        init_gateway: Set False to run with no gateway unless one is passed

    Returns:
        Configured Flask app
    """
    config = config or ScreenBrainConfig.load()
    if client is None and init_gateway:
        client = init_client(config.models)
    if registry is None:
        registry = SessionRegistry(config.storage.sessions_path)

    app = Flask(__name__)
    # Multipart framing needs headroom above the image limit itself
    app.config["MAX_CONTENT_LENGTH"] = config.capture.max_image_bytes + UPLOAD_OVERHEAD_BYTES
    app.extensions["screenbrain"] = AppState(
        config=config,
        registry=registry,
        orchestrator=CaptureOrchestrator(client, registry, config),
    )
    app.register_blueprint(api_bp)

    logger.info(
        f"screenbrain app ready: provider={config.models.provider}, "
        f"gateway_available={client is not None}, sessions={registry.base_dir}"
    )
    return app


__all__ = ["AppState", "api_bp", "create_app"]
