"""EmailJS relay for private feedback sent to the business owner."""

import logging

import httpx

from .config import Settings, require
from .models import Business, ContactForm

logger = logging.getLogger(__name__)

EMAILJS_ENDPOINT = "https://api.emailjs.com/api/v1.0/email/send"


def build_template_params(business: Business, form: ContactForm) -> dict[str, str]:
    return {
        "to_email": business.client_email,
        "from_email": form.email,
        "business_name": business.business_name,
        "customer_email": form.email,
        "message": form.message,
        "customer_name": form.customer_name,
    }


class FeedbackMailer:
    def __init__(
        self,
        service_id: str,
        template_id: str,
        public_key: str,
        timeout: float = 10.0,
        endpoint: str = EMAILJS_ENDPOINT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.service_id = service_id
        self.template_id = template_id
        self.public_key = public_key
        self.endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "FeedbackMailer":
        return cls(
            service_id=require(settings.emailjs_service_id, "EMAILJS_SERVICE_ID"),
            template_id=require(settings.emailjs_template_id, "EMAILJS_TEMPLATE_ID"),
            public_key=require(settings.emailjs_public_key, "EMAILJS_PUBLIC_KEY"),
            timeout=settings.email_timeout,
        )

    async def send(self, business: Business, form: ContactForm) -> None:
        payload = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": build_template_params(business, form),
        }

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(self.endpoint, json=payload)
            response.raise_for_status()

        logger.info("Feedback email sent to %s for %s", business.client_email, business.business_name)
