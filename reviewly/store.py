"""Supabase REST client for business records and feedback submissions.

Slug resolution sits here too: a slug names a business in the page path and
has to be turned into a `clients.id` before the record can be read.
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from .config import Settings, require
from .models import Business

logger = logging.getLogger(__name__)


class ClientRow(BaseModel):
    """Shape of a `clients` row; unknown columns are ignored."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    client_name: str | None = None
    business_name: str | None = None
    client_email: str | None = None
    theme_colour: str | None = None
    google_reviews_link: str | None = None
    keywords: str | None = None


class StaticSlugLookup:
    """Resolve slugs from a fixed slug -> business id table."""

    def __init__(self, table: dict[str, str]):
        self._table = dict(table)

    async def resolve(self, slug: str) -> str | None:
        return self._table.get(slug)

    def slugs(self) -> list[str]:
        return list(self._table)


class BusinessStore:
    """
    Reads `clients` rows and writes `feedback_submissions` rows.

    Both calls authenticate with the anon key as `apikey` and as a bearer
    token, the way Supabase's PostgREST gateway expects.
    """

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "BusinessStore":
        return cls(
            base_url=require(settings.supabase_url, "SUPABASE_URL"),
            anon_key=require(settings.supabase_anon_key, "SUPABASE_ANON_KEY"),
            timeout=settings.store_timeout,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._anon_key,
            "Authorization": f"Bearer {self._anon_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def get_business(self, business_id: str) -> Business | None:
        """
        Fetch one business by id.

        Returns None when the table has no such row. Transport errors and
        non-2xx responses propagate as httpx exceptions; a payload that isn't
        a list of `clients` rows raises ValueError (pydantic ValidationError).
        """
        endpoint = f"{self.base_url}/rest/v1/clients"
        params = {"id": f"eq.{business_id}", "select": "*"}

        async with self._client() as client:
            response = await client.get(endpoint, params=params, headers=self._headers())
            response.raise_for_status()
            rows: Any = response.json()

        if not isinstance(rows, list):
            raise ValueError(f"Expected a list of clients rows, got {type(rows).__name__}")
        if not rows:
            return None
        row = ClientRow.model_validate(rows[0])
        return Business.from_record(row.model_dump())

    async def save_feedback(self, business_id: str, customer_email: str, message: str) -> None:
        endpoint = f"{self.base_url}/rest/v1/feedback_submissions"
        payload = {
            "business_id": business_id,
            "customer_email": customer_email,
            "message": message,
        }

        async with self._client() as client:
            response = await client.post(endpoint, json=payload, headers=self._headers())
            response.raise_for_status()

        logger.info("Stored feedback submission for business %s", business_id)
