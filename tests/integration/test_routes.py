import json

import pytest
from fastapi import FastAPI
from fastapi import status
from fastapi.testclient import TestClient

# Router under test
from app.api import routes as routes_module
from app.core.config import settings
from app.models.document_models import GenerationErrorKind
from app.services.llm import GenerationError
from app.services.session_store import SessionStore

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fastapi_app(monkeypatch):
    """Return a FastAPI app with router under test and a fresh session store."""
    monkeypatch.setattr(routes_module, "session_store", SessionStore())
    monkeypatch.setattr(settings, "api_key", None)
    monkeypatch.setattr(settings, "variant_models", ["test-model"])
    monkeypatch.setattr(settings, "variant_temperatures", [0.2, 0.7, 1.2])
    monkeypatch.setattr(settings, "auto_select_winner", True)

    app = FastAPI()
    app.include_router(routes_module.router)
    return app


@pytest.fixture()
def client(fastapi_app):
    return TestClient(fastapi_app)


def _lines(resp):
    return [json.loads(line) for line in resp.text.splitlines() if line.strip()]


def _create(client, variants=1, title="Climate Report", database=b"CO2 data"):
    files = {"database": ("db.txt", database, "text/plain")}
    data = {"title": title, "style": "formal", "length": "short", "variants": str(variants)}
    return client.post("/api/sessions", files=files, data=data)


def _answer_by_temperature(fake_invoke, failing_temperature=None):
    def handler(call):
        if call["temperature"] == failing_temperature:
            raise GenerationError(GenerationErrorKind.TIMEOUT, "slow")
        return f"text@{call['temperature']}"

    return fake_invoke(handler)


# ---------------------------------------------------------------------------
# /api/sessions
# ---------------------------------------------------------------------------


def test_create_session_streams_all_sections(client, fake_invoke):
    calls = _answer_by_temperature(fake_invoke)
    resp = _create(client)

    assert resp.status_code == status.HTTP_200_OK
    assert resp.headers["content-type"].startswith("application/x-ndjson")
    events = _lines(resp)
    assert events[0]["type"] == "session"
    assert events[0]["session_id"] == resp.headers["x-session-id"]
    assert len(events[0]["sections"]) == 5
    assert events[-1]["type"] == "finished"
    assert len(calls) == 5


def test_create_session_without_database_is_400(client):
    resp = client.post("/api/sessions", data={"title": "T"})
    assert resp.status_code == status.HTTP_400_BAD_REQUEST
    assert "database" in resp.json()["detail"]


def test_create_session_too_many_variants_is_400(client):
    resp = _create(client, variants=9)
    assert resp.status_code == status.HTTP_400_BAD_REQUEST


def test_missing_api_key_is_403(client, monkeypatch):
    monkeypatch.setattr(settings, "api_key", "secret")
    assert client.get("/api/models").status_code == status.HTTP_403_FORBIDDEN
    assert client.get("/api/models", headers={"X-API-Key": "secret"}).status_code == status.HTTP_200_OK


def test_list_models(client):
    body = client.get("/api/models").json()
    assert body["models"] == ["test-model"]
    assert body["auto_select_winner"] is True


# ---------------------------------------------------------------------------
# Selection, editing, navigation, export
# ---------------------------------------------------------------------------


def test_select_edit_navigate_and_export(client, fake_invoke, monkeypatch):
    monkeypatch.setattr(settings, "auto_select_winner", False)
    _answer_by_temperature(fake_invoke, failing_temperature=0.7)

    resp = _create(client, variants=3)
    session_id = resp.headers["x-session-id"]
    events = _lines(resp)
    variant_events = [e for e in events if e["type"] == "variant"]
    assert len(variant_events) == 3
    assert variant_events[1]["error"]["kind"] == "timeout"
    assert events[-1]["type"] == "selection_needed"

    # failed variant cannot win
    assert client.post(f"/api/sessions/{session_id}/sections/0/select", json={"variant_index": 1}).status_code == 409

    winner = client.post(f"/api/sessions/{session_id}/sections/0/select", json={"variant_index": 2}).json()
    assert winner == {"section_name": "Introduction", "variant_index": 2, "content": "text@1.2", "edited": False}

    edited = client.put(f"/api/sessions/{session_id}/sections/0/content", json={"content": "My intro."}).json()
    assert edited["variant_index"] == 2
    assert edited["edited"] is True

    snapshot = client.post(f"/api/sessions/{session_id}/navigate", json={"direction": "next"}).json()
    assert snapshot["current_section_index"] == 1
    snapshot = client.post(f"/api/sessions/{session_id}/navigate", json={"index": 0}).json()
    assert snapshot["sections"][0]["status"] == "edited"
    assert snapshot["sections"][0]["winner"]["content"] == "My intro."

    assert client.post(f"/api/sessions/{session_id}/navigate", json={"index": 9}).status_code == 422

    export = client.get(f"/api/sessions/{session_id}/export")
    assert export.status_code == status.HTTP_200_OK
    assert export.headers["content-type"].startswith("text/plain")
    assert 'filename="climate_report.txt"' in export.headers["content-disposition"]
    assert export.text.startswith("Climate Report\n\nIntroduction:\n\nMy intro.\n\n")
    assert "Background and Context:\n\nNo content generated for this section.\n\n" in export.text


def test_continue_uses_selected_content(client, fake_invoke, monkeypatch):
    monkeypatch.setattr(settings, "auto_select_winner", False)
    calls = _answer_by_temperature(fake_invoke)
    session_id = _create(client, variants=2).headers["x-session-id"]
    client.post(f"/api/sessions/{session_id}/sections/0/select", json={"variant_index": 1})

    events = _lines(client.post(f"/api/sessions/{session_id}/continue"))

    assert events[-1]["type"] == "selection_needed"
    assert events[-1]["section"] == "Background and Context"
    assert "text@0.7" in calls[2]["human_prompt"]


def test_regenerate_blocked_by_unresolved_upstream(client, fake_invoke, monkeypatch):
    monkeypatch.setattr(settings, "auto_select_winner", False)
    _answer_by_temperature(fake_invoke)
    session_id = _create(client, variants=2).headers["x-session-id"]

    resp = client.post(f"/api/sessions/{session_id}/sections/1/generate")
    assert resp.status_code == status.HTTP_409_CONFLICT


def test_regenerate_section_returns_results(client, fake_invoke):
    _answer_by_temperature(fake_invoke)
    session_id = _create(client).headers["x-session-id"]

    resp = client.post(f"/api/sessions/{session_id}/sections/0/generate")

    assert resp.status_code == status.HTTP_200_OK
    assert [r["content"] for r in resp.json()] == ["text@0.2"]


def test_unknown_session_is_404(client):
    assert client.get("/api/sessions/nope").status_code == status.HTTP_404_NOT_FOUND
    assert client.get("/api/sessions/nope/export").status_code == status.HTTP_404_NOT_FOUND


def test_discard_session(client, fake_invoke):
    _answer_by_temperature(fake_invoke)
    session_id = _create(client).headers["x-session-id"]

    assert client.delete(f"/api/sessions/{session_id}").status_code == status.HTTP_204_NO_CONTENT
    assert client.get(f"/api/sessions/{session_id}").status_code == status.HTTP_404_NOT_FOUND


def test_edit_while_section_regenerates_is_409(client, fake_invoke):
    _answer_by_temperature(fake_invoke)
    session_id = _create(client).headers["x-session-id"]
    pipeline = routes_module.session_store.get(session_id)
    pipeline.state.in_flight.add("Introduction")

    resp = client.put(f"/api/sessions/{session_id}/sections/0/content", json={"content": "Mine."})

    assert resp.status_code == status.HTTP_409_CONFLICT
    assert pipeline.state.winners["Introduction"].content == "text@0.2"
