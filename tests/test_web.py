"""API and page tests against the FastAPI app with fake collaborators."""

import httpx
import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from reviewly import web
from reviewly.flow import FEEDBACK_SENT, FlowSession
from reviewly.web import SessionRegistry, app

from conftest import FakeEmailJS


@pytest.fixture
def client(services):
    app.state.services = services
    app.state.sessions = SessionRegistry()
    yield TestClient(app)
    app.state.services = None
    app.state.sessions = None


def start(client, slug="sushi-grill"):
    response = client.post("/api/sessions", json={"slug": slug})
    assert response.status_code == 200
    return response.json()


def test_index_links_to_demo(client):
    response = client.get("/")
    assert response.status_code == 200
    assert 'href="/sushi-grill"' in response.text


def test_business_page_embeds_session(client):
    response = client.get("/sushi-grill")

    assert response.status_code == 200
    assert "Share Your Experience - Sushi Grill | Reviewly" in response.text
    assert "#e11d48" in response.text
    assert '"step": "experience"' in response.text
    assert len(app.state.sessions) == 1


def test_unknown_slug_page_is_not_found(client):
    response = client.get("/nowhere")

    assert response.status_code == 404
    assert "Business Not Found" in response.text
    assert len(app.state.sessions) == 0


def test_create_session_unknown_slug(client):
    response = client.post("/api/sessions", json={"slug": "nowhere"})
    assert response.status_code == 404


def test_unknown_session(client):
    assert client.get("/api/sessions/missing").status_code == 404


def test_positive_path(client, generator):
    state = start(client)
    sid = state["session_id"]
    assert [k["keyword"] for k in state["keywords"]] == ["fast service", "friendly staff", "great food"]

    state = client.post(f"/api/sessions/{sid}/step", json={"step": "keywords"}).json()
    assert state["can_advance"] is False

    blocked = client.post(f"/api/sessions/{sid}/step", json={"step": "review"})
    assert blocked.status_code == 409

    client.post(f"/api/sessions/{sid}/keywords", json={"keyword": "friendly staff"})
    state = client.post(f"/api/sessions/{sid}/keywords", json={"keyword": "great food"}).json()
    assert state["selected_keywords"] == ["friendly staff", "great food"]

    state = client.post(f"/api/sessions/{sid}/step", json={"step": "review"}).json()
    assert state["generated_review"] == "Loved it. Will be back!"
    assert len(generator.calls) == 1

    handoff = client.post(f"/api/sessions/{sid}/copy").json()
    assert handoff == {"text": "Loved it. Will be back!", "url": "https://g.page/r/sushi-grill/review"}

    generator.text = "Another take."
    state = client.post(f"/api/sessions/{sid}/regenerate").json()
    assert state["generated_review"] == "Another take."

    state = client.post(f"/api/sessions/{sid}/back").json()
    assert state["step"] == "keywords"


def test_unknown_keyword_is_unprocessable(client):
    sid = start(client)["session_id"]
    client.post(f"/api/sessions/{sid}/step", json={"step": "keywords"})

    response = client.post(f"/api/sessions/{sid}/keywords", json={"keyword": "valet"})
    assert response.status_code == 422


def test_copy_outside_review_conflicts(client):
    sid = start(client)["session_id"]
    assert client.post(f"/api/sessions/{sid}/copy").status_code == 409


@pytest.mark.parametrize("relay_status", [200, 502])
def test_contact_always_acknowledged(client, services, relay_status):
    services.mailer._transport = httpx.MockTransport(FakeEmailJS(status=relay_status))
    sid = start(client)["session_id"]
    client.post(f"/api/sessions/{sid}/step", json={"step": "feedback"})
    client.post(f"/api/sessions/{sid}/step", json={"step": "contact"})

    response = client.post(
        f"/api/sessions/{sid}/contact",
        json={"email": "jane@example.com", "message": "Too noisy."},
    )

    assert response.status_code == 200
    assert response.json()["notice"] == FEEDBACK_SENT


def test_contact_requires_both_fields(client):
    sid = start(client)["session_id"]
    client.post(f"/api/sessions/{sid}/step", json={"step": "feedback"})
    client.post(f"/api/sessions/{sid}/step", json={"step": "contact"})

    response = client.post(f"/api/sessions/{sid}/contact", json={"email": "", "message": "hi"})
    assert response.status_code == 422


def test_registry_drops_oldest(services):
    registry = SessionRegistry(limit=2)
    first = registry.add(FlowSession("a", services))
    registry.add(FlowSession("b", services))
    registry.add(FlowSession("c", services))

    assert len(registry) == 2
    with pytest.raises(HTTPException):
        registry.get(first)


def test_dotted_paths_skip_the_store(client, supabase):
    response = client.get("/favicon.ico")

    assert response.status_code == 404
    assert supabase.requests == []
    assert len(app.state.sessions) == 0


def test_malformed_store_row_renders_not_found(client, services):
    services.store._transport = httpx.MockTransport(lambda request: httpx.Response(200, json=["oops"]))

    assert client.get("/sushi-grill").status_code == 404
    assert client.post("/api/sessions", json={"slug": "sushi-grill"}).status_code == 404


def test_startup_configures_logging(services, monkeypatch):
    levels = []
    monkeypatch.setenv("REVIEWLY_LOG_LEVEL", "debug")
    monkeypatch.setattr(web, "configure_logging", levels.append)
    app.state.services = services
    try:
        with TestClient(app) as client:
            assert client.get("/").status_code == 200
    finally:
        app.state.services = None

    assert levels == ["DEBUG"]
