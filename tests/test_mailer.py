import httpx
import pytest

from reviewly.config import Settings
from reviewly.mailer import EMAILJS_ENDPOINT, FeedbackMailer, build_template_params
from reviewly.models import Business, ContactForm

from conftest import SUSHI_GRILL, FakeEmailJS

BUSINESS = Business.from_record(SUSHI_GRILL)


def test_template_params():
    params = build_template_params(BUSINESS, ContactForm("sam.lee@example.com", "Our order was wrong."))

    assert params == {
        "to_email": "owner@sushigrill.example",
        "from_email": "sam.lee@example.com",
        "business_name": "Sushi Grill",
        "customer_email": "sam.lee@example.com",
        "message": "Our order was wrong.",
        "customer_name": "sam.lee",
    }


@pytest.mark.asyncio
async def test_send_payload(mailer, emailjs):
    await mailer.send(BUSINESS, ContactForm("sam@example.com", "Cold."))

    payload = emailjs.payloads[0]
    assert payload["service_id"] == "service_abc"
    assert payload["template_id"] == "template_xyz"
    assert payload["user_id"] == "public_123"
    assert payload["template_params"]["message"] == "Cold."


@pytest.mark.asyncio
async def test_send_raises_on_relay_error():
    mailer = FeedbackMailer("s", "t", "p", transport=httpx.MockTransport(FakeEmailJS(status=400)))
    with pytest.raises(httpx.HTTPStatusError):
        await mailer.send(BUSINESS, ContactForm("sam@example.com", "Cold."))


def test_from_settings():
    with pytest.raises(ValueError, match="EMAILJS_SERVICE_ID not set."):
        FeedbackMailer.from_settings(Settings())

    mailer = FeedbackMailer.from_settings(Settings(
        emailjs_service_id="s", emailjs_template_id="t", emailjs_public_key="p", email_timeout=3.0,
    ))
    assert mailer.endpoint == EMAILJS_ENDPOINT
