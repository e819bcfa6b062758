"""Integration tests for the Flask HTTP surface."""

import io
import json

import pytest

from screenbrain.llm_client import LLMError
from screenbrain.server import create_app

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 256


def _capture(client, goal="open account settings", data=PNG, content_type="image/png", **extra):
    form = {"goal": goal}
    if data is not None:
        form["image"] = (io.BytesIO(data), "screen.png", content_type)
    form.update(extra)
    return client.post("/capture", data=form, content_type="multipart/form-data")


def _sid_cookie(response):
    for header in response.headers.getlist("Set-Cookie"):
        if header.startswith("sid="):
            return header
    return None


class TestCaptureEndpoint:
    """POST /capture."""

    def test_minimal_response(self, client):
        response = _capture(client, agent_name="agent-9")

        assert response.status_code == 200
        body = response.get_json()
        assert body["ok"] is True
        assert body["session_key"] == "agent-9"
        assert body["stored"] is True
        assert "brain" not in body
        assert body["brain_summary"] == "Account settings page with a left sidebar"

    def test_cookie_issued_for_new_identity(self, client):
        response = _capture(client)

        cookie = _sid_cookie(response)
        assert cookie is not None
        assert "HttpOnly" in cookie
        assert "SameSite=Lax" in cookie
        assert "Path=/" in cookie
        assert cookie.startswith(f"sid={response.get_json()['session_key']}")

    def test_cookie_not_reissued_for_known_identity(self, client):
        client.set_cookie("sid", "known")
        response = _capture(client)

        assert response.get_json()["session_key"] == "known"
        assert _sid_cookie(response) is None

    def test_hint_refreshes_cookie(self, client):
        client.set_cookie("sid", "agent-9")
        response = _capture(client, agent_name="agent-9")
        assert _sid_cookie(response) is not None

    def test_debug_response(self, client):
        response = client.post(
            "/capture?debug=1",
            data={"goal": "open account settings", "image": (io.BytesIO(PNG), "screen.png", "image/png")},
            content_type="multipart/form-data",
        )

        body = response.get_json()
        assert body["received"]["filename"] == "screen.png"
        assert body["received"]["type"] == "image/png"
        assert len(body["brain"]["ui_elements"]) == 12
        assert body["debug"]["stages"][-1] == "done"
        assert body["store_error"] is None

    @pytest.mark.parametrize(
        "kwargs,status,kind",
        [
            ({"goal": "settings"}, 400, "InvalidGoal"),
            ({"data": None}, 400, "MissingImage"),
            ({"content_type": "image/gif"}, 415, "UnsupportedMediaType"),
            ({"data": b"\x00" * (5 * 1024 * 1024 + 1)}, 413, "PayloadTooLarge"),
        ],
    )
    def test_caller_errors(self, client, kwargs, status, kind):
        response = _capture(client, **kwargs)

        assert response.status_code == status
        body = response.get_json()
        assert body["ok"] is False
        assert body["kind"] == kind
        assert body["error"]

    def test_gateway_unavailable(self, config, registry):
        app = create_app(config=config, registry=registry, init_gateway=False)
        response = _capture(app.test_client())

        assert response.status_code == 500
        assert response.get_json()["kind"] == "GatewayUnavailable"

    def test_stage_failure_debug_detail(self, config, registry, make_gateway):
        gateway = make_gateway(vision=[LLMError("vision down")])
        client = create_app(config=config, client=gateway, registry=registry).test_client()

        plain = _capture(client)
        assert plain.status_code == 502
        assert set(plain.get_json()) == {"ok", "error", "kind"}

        response = client.post(
            "/capture?debug=1",
            data={"goal": "open account settings", "image": (io.BytesIO(PNG), "s.png", "image/png")},
            content_type="multipart/form-data",
        )
        body = response.get_json()
        assert body["kind"] == "VisionStageFailed"
        assert body["debug_stage"] == "vision"
        assert body["debug_vision_model"] == config.models.vision_model

    def test_invalid_model_output(self, config, registry, make_gateway):
        gateway = make_gateway(structure=["no json"])
        client = create_app(config=config, client=gateway, registry=registry).test_client()

        response = _capture(client)
        assert response.status_code == 502
        assert response.get_json()["kind"] == "InvalidModelOutput"

    def test_unexpected_error_is_internal(self, config, registry, make_gateway):
        gateway = make_gateway(vision=[RuntimeError("kaboom")])
        client = create_app(config=config, client=gateway, registry=registry).test_client()

        response = client.post(
            "/capture?debug=1",
            data={"goal": "open account settings", "image": (io.BytesIO(PNG), "s.png", "image/png")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 502
        body = response.get_json()
        assert body["kind"] == "InternalError"
        assert body["error"] == "kaboom"
        assert "RuntimeError" in body["debug_trace"]

    def test_unexpected_error_hides_detail_without_debug(self, config, registry, make_gateway):
        gateway = make_gateway(vision=[RuntimeError("model said secret")])
        client = create_app(config=config, client=gateway, registry=registry).test_client()

        response = _capture(client)

        assert response.status_code == 502
        assert response.get_json() == {
            "ok": False,
            "error": "Internal error during capture.",
            "kind": "InternalError",
        }

    def test_unencodable_model_text_captured(self, config, registry, make_gateway, brain_dict):
        reply = json.dumps(brain_dict(steps=["open \udc80 menu"] * 7))
        gateway = make_gateway(structure=[reply])
        client = create_app(config=config, client=gateway, registry=registry).test_client()

        response = _capture(client, agent_name="u")

        assert response.status_code == 200
        assert response.get_json()["stored"] is True
        steps = client.get("/session?sid=u").get_json()["session"]["last_result_json"]["steps"]
        assert steps[0] == "open ? menu"

    def test_upload_over_request_limit(self, client):
        """Bodies past the request cap are refused before the image is read."""
        response = _capture(client, data=b"\x00" * (6 * 1024 * 1024))

        assert response.status_code == 413
        body = response.get_json()
        assert body["kind"] == "PayloadTooLarge"
        assert body["ok"] is False


class TestSessionEndpoints:
    """GET/POST /session*."""

    def test_missing_sid(self, client):
        response = client.get("/session")
        assert response.status_code == 400
        assert response.get_json()["kind"] == "MissingSessionKey"

    def test_empty_session(self, client):
        body = client.get("/session?sid=fresh").get_json()
        assert body["ok"] is True
        assert body["session"]["history"] == []
        assert body["session"]["step_index"] == 0

    def test_capture_then_read(self, client):
        _capture(client, agent_name="agent-1")

        session = client.get("/session", headers={"X-Sid": "agent-1"}).get_json()["session"]
        assert session["active_goal"] == "open account settings"
        assert session["last_result_json"]["expected_next_screen"] == "Profile editor"
        assert len(session["history"]) == 1

    def test_cookie_identifies_session(self, client):
        _capture(client)
        # The test client keeps the issued cookie
        session = client.get("/session").get_json()["session"]
        assert session["last_image_hash"] is not None

    def test_query_beats_header(self, client):
        client.post("/session/memo?sid=a", json={"memo": "for a"})
        body = client.get("/session?sid=a", headers={"X-Sid": "b"}).get_json()
        assert body["session"]["agent_memo"] == "for a"

    def test_memo(self, client):
        assert client.post("/session/memo?sid=m", json={"memo": "A"}).get_json() == {"ok": True}
        client.post("/session/memo?sid=m", json={"memo": "B", "mode": "append"})
        assert client.get("/session?sid=m").get_json()["session"]["agent_memo"] == "A\nB"

    def test_memo_without_body(self, client):
        response = client.post("/session/memo?sid=m", data="not json", content_type="text/plain")
        assert response.status_code == 200
        assert client.get("/session?sid=m").get_json()["session"]["agent_memo"] is None

    def test_step(self, client):
        client.post("/session/step?sid=s", json={"step_index": 4})
        assert client.get("/session?sid=s").get_json()["session"]["step_index"] == 4
        client.post("/session/step?sid=s", json={"step_index": -2})
        assert client.get("/session?sid=s").get_json()["session"]["step_index"] == 0

    def test_reset(self, client):
        _capture(client, agent_name="r")
        assert client.post("/session/reset?sid=r").get_json() == {"ok": True}
        session = client.get("/session?sid=r").get_json()["session"]
        assert session["last_result_json"] is None
        assert session["history"] == []

    def test_context(self, client):
        assert client.get("/session/context?sid=c").get_json() == {"ok": True, "context": ""}

        _capture(client, agent_name="c")
        context = client.get("/session/context?sid=c").get_json()["context"]
        assert "--- SCREENSHOT_ANALYSIS ---" in context
        assert "Goal (from upload): open account settings" in context


class TestHealth:
    """GET /health."""

    def test_available(self, client):
        assert client.get("/health").get_json() == {"ok": True, "gateway_available": True}

    def test_unavailable(self, config, registry):
        app = create_app(config=config, registry=registry, init_gateway=False)
        assert app.test_client().get("/health").get_json()["gateway_available"] is False
