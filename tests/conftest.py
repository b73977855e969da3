"""Shared fixtures: a fake Supabase, a scriptable review generator and an EmailJS stub."""

import json

import httpx
import pytest

from reviewly.flow import FlowServices
from reviewly.mailer import FeedbackMailer
from reviewly.store import BusinessStore, StaticSlugLookup

SUPABASE_URL = "https://demo.supabase.co"

SUSHI_GRILL = {
    "id": 16,
    "client_name": "Ken Tanaka",
    "business_name": "Sushi Grill",
    "client_email": "owner@sushigrill.example",
    "theme_colour": "#e11d48",
    "google_reviews_link": "https://g.page/r/sushi-grill/review",
    "keywords": "fast service, friendly staff, great food",
}


class FakeSupabase:
    """MockTransport handler serving `clients` rows and recording writes."""

    def __init__(self, rows=None, fail_reads=False, fail_writes=False):
        self.rows = {str(r["id"]): r for r in (rows or [SUSHI_GRILL])}
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.requests: list[httpx.Request] = []
        self.feedback: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/rest/v1/clients":
            if self.fail_reads:
                return httpx.Response(503, json={"message": "unavailable"})
            business_id = request.url.params["id"].removeprefix("eq.")
            row = self.rows.get(business_id)
            return httpx.Response(200, json=[row] if row else [])
        if request.url.path == "/rest/v1/feedback_submissions":
            if self.fail_writes:
                return httpx.Response(500, json={"message": "boom"})
            self.feedback.append(json.loads(request.content))
            return httpx.Response(201)
        return httpx.Response(404)


class FakeGenerator:
    def __init__(self, text="Loved it. Will be back!", error=None):
        self.text = text
        self.error = error
        self.calls: list[tuple[str, list[str]]] = []

    async def generate(self, business_name, keywords):
        self.calls.append((business_name, list(keywords)))
        if self.error is not None:
            raise self.error
        return self.text


class FakeEmailJS:
    def __init__(self, status=200):
        self.status = status
        self.payloads: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.payloads.append(json.loads(request.content))
        return httpx.Response(self.status, text="OK")


@pytest.fixture
def supabase():
    return FakeSupabase()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def emailjs():
    return FakeEmailJS()


@pytest.fixture
def store(supabase):
    return BusinessStore(SUPABASE_URL, "anon-key", transport=httpx.MockTransport(supabase))


@pytest.fixture
def mailer(emailjs):
    return FeedbackMailer(
        service_id="service_abc",
        template_id="template_xyz",
        public_key="public_123",
        transport=httpx.MockTransport(emailjs),
    )


@pytest.fixture
def services(store, generator, mailer):
    return FlowServices(
        slug_lookup=StaticSlugLookup({"sushi-grill": "16", "john-does-restaurant": "15"}),
        store=store,
        generator=generator,
        mailer=mailer,
    )
