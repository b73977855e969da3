"""Per-visit feedback flow: experience -> keywords -> review, or -> feedback -> contact.

A FlowSession owns everything one visitor does on one business page. The
three outbound calls (record fetch, review drafting, feedback email) never
surface errors to the visitor: a failed fetch reads as "not found", a failed
draft is replaced with fallback text, and feedback is always acknowledged.
"""

import logging
from dataclasses import dataclass
from typing import Callable

import httpx

from .config import Settings
from .generator import ReviewGenerator, fallback_review
from .mailer import FeedbackMailer
from .models import (
    BACK_STEPS,
    INITIAL_STEP,
    PROGRESS_STEPS,
    TRANSITIONS,
    Business,
    ContactForm,
    Keyword,
    parse_keywords,
)
from .store import BusinessStore, StaticSlugLookup

logger = logging.getLogger(__name__)

FEEDBACK_SENT = "Thank you for your feedback! We have sent your message to the manager."
COPY_FAILED = "We couldn't copy your review automatically. Please copy it and paste it on Google Reviews."
REVIEW_COPIED = "Review copied! Paste it on Google Reviews."


class FlowError(ValueError):
    """A visitor action that the current step doesn't allow."""


class InputError(FlowError):
    """A visitor action rejected because of what was entered or picked."""


class ClipboardError(RuntimeError):
    """Raised by clipboard writers when the text could not be copied."""


@dataclass
class FlowServices:
    slug_lookup: StaticSlugLookup
    store: BusinessStore
    generator: ReviewGenerator
    mailer: FeedbackMailer

    @classmethod
    def from_settings(cls, settings: Settings) -> "FlowServices":
        return cls(
            slug_lookup=StaticSlugLookup(settings.slugs),
            store=BusinessStore.from_settings(settings),
            generator=ReviewGenerator.from_settings(settings),
            mailer=FeedbackMailer.from_settings(settings),
        )


class FlowSession:
    def __init__(self, slug: str, services: FlowServices):
        self.slug = slug
        self.services = services

        self.step = INITIAL_STEP
        self.business: Business | None = None
        self.keywords: list[Keyword] = []
        self.selected_keywords: list[str] = []
        self.generated_review = ""
        self.contact = ContactForm()
        self.notice: str | None = None

        self.is_loading = False
        self.is_generating = False
        self.is_submitting = False
        self._loaded = False

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def found(self) -> bool:
        return self.business is not None

    @property
    def can_advance(self) -> bool:
        """False only while on the keywords step with nothing selected."""
        return self.step != "keywords" or bool(self.selected_keywords)

    @property
    def progress_index(self) -> int | None:
        if self.step in PROGRESS_STEPS:
            return PROGRESS_STEPS.index(self.step)
        return None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> Business | None:
        """
        Resolve the slug and fetch the business record, once per session.

        Unknown slugs, fetch failures and malformed records all leave the
        session without a business (rendered as "Business Not Found").
        """
        if self._loaded:
            return self.business
        self._loaded = True
        self.is_loading = True

        try:
            business_id = await self.services.slug_lookup.resolve(self.slug)
            if business_id is None:
                logger.info("Unknown slug %r", self.slug)
                return None

            business = await self.services.store.get_business(business_id)
            if business is None:
                logger.info("No business with id %s (slug %r)", business_id, self.slug)
                return None

            self.business = business
            self.keywords = parse_keywords(business.keywords)
            return business
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error("Error loading business for slug %r: %s", self.slug, e)
            return None
        finally:
            self.is_loading = False

    def _require_business(self) -> Business:
        if self.business is None:
            raise FlowError("Business not found.")
        return self.business

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def go_to(self, step: str):
        """
        Move to `step` if the step graph allows it from the current step.

        Arriving at "review" with no draft yet kicks off generation.
        """
        self._require_business()
        if step not in TRANSITIONS.get(self.step, ()):
            raise FlowError(f"Cannot go from {self.step} to {step}.")
        if self.step == "keywords" and step == "review" and not self.selected_keywords:
            raise FlowError("Select at least one keyword first.")

        self.step = step
        self.notice = None

        if step == "review" and not self.generated_review:
            await self.generate_review()

    async def back(self):
        self._require_business()
        previous = BACK_STEPS.get(self.step)
        if previous is None:
            raise FlowError(f"No step before {self.step}.")
        self.step = previous
        self.notice = None

    # ------------------------------------------------------------------
    # Keywords and review
    # ------------------------------------------------------------------

    def toggle_keyword(self, label: str) -> bool:
        """Select or deselect `label`; returns True if it is now selected."""
        self._require_business()
        if self.step != "keywords":
            raise FlowError("Keywords can only be changed on the keywords step.")
        if label not in {k.keyword for k in self.keywords}:
            raise InputError(f"Unknown keyword: {label!r}")

        if label in self.selected_keywords:
            self.selected_keywords = [k for k in self.selected_keywords if k != label]
            return False
        self.selected_keywords.append(label)
        return True

    async def generate_review(self) -> bool:
        """
        Draft review text from the selected keywords.

        Returns False without calling out if a draft is already in flight.
        """
        business = self._require_business()
        if self.is_generating:
            logger.debug("Review generation already in flight for %s", business.id)
            return False

        self.is_generating = True
        keywords = list(self.selected_keywords)
        try:
            self.generated_review = await self.services.generator.generate(
                business.business_name, keywords
            )
        except Exception as e:
            logger.warning("Error generating review for %s, using fallback: %s", business.business_name, e)
            self.generated_review = fallback_review(business.business_name, keywords)
        finally:
            self.is_generating = False
        return True

    async def regenerate(self) -> bool:
        self._require_business()
        if self.step != "review":
            raise FlowError("Reviews can only be regenerated on the review step.")
        if self.is_generating:
            return False
        self.generated_review = ""
        return await self.generate_review()

    def review_handoff(self) -> tuple[str, str]:
        """The draft text and the review-site URL it should be pasted into."""
        business = self._require_business()
        if self.step != "review":
            raise FlowError("Nothing to copy outside the review step.")
        return self.generated_review, business.google_reviews_link

    def copy_and_redirect(
        self,
        copy: Callable[[str], None],
        open_url: Callable[[str], object],
    ) -> str:
        """
        Copy the draft with `copy`, then open the review site with `open_url`.

        The review site is opened even when copying fails; the notice tells
        the visitor to copy by hand. Returns the review-site URL.
        """
        text, url = self.review_handoff()

        try:
            copy(text)
            self.notice = REVIEW_COPIED
        except ClipboardError as e:
            logger.warning("Clipboard write failed: %s", e)
            self.notice = COPY_FAILED

        open_url(url)
        return url

    def open_review_site(self, open_url: Callable[[str], object]) -> str:
        """Send an unhappy visitor to the public review site anyway."""
        business = self._require_business()
        if self.step != "feedback":
            raise FlowError("The review site is offered from the feedback step.")
        open_url(business.google_reviews_link)
        return business.google_reviews_link

    # ------------------------------------------------------------------
    # Private feedback
    # ------------------------------------------------------------------

    async def submit_feedback(self, email: str | None = None, message: str | None = None) -> str | None:
        """
        Email the contact form to the business owner and store a copy.

        Delivery problems are logged, never shown: the visitor gets the same
        thank-you notice and an empty form whether or not the email went out. Returns the notice, or None if a
        submission is already in flight.
        """
        business = self._require_business()
        if self.step != "contact":
            raise FlowError("Feedback is submitted from the contact step.")
        if email is not None:
            self.contact.email = email
        if message is not None:
            self.contact.message = message
        if not self.contact.is_complete:
            raise InputError("Email and message are both required.")
        if self.is_submitting:
            return None

        self.is_submitting = True
        form = ContactForm(email=self.contact.email.strip(), message=self.contact.message.strip())
        try:
            await self._store_feedback(business, form)
            await self.services.mailer.send(business, form)
        except Exception:
            logger.exception("Error submitting feedback for %s", business.business_name)
        finally:
            self.notice = FEEDBACK_SENT
            self.contact.clear()
            self.is_submitting = False
        return self.notice

    async def _store_feedback(self, business: Business, form: ContactForm):
        try:
            await self.services.store.save_feedback(business.id, form.email, form.message)
        except httpx.HTTPError as e:
            logger.warning("Could not store feedback for %s: %s", business.id, e)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        business = self.business
        return {
            "slug": self.slug,
            "found": self.found,
            "step": self.step,
            "progress_index": self.progress_index,
            "business": None if business is None else {
                "id": business.id,
                "business_name": business.business_name,
                "theme_colour": business.theme_colour,
                "google_reviews_link": business.google_reviews_link,
            },
            "keywords": [{"id": k.id, "keyword": k.keyword} for k in self.keywords],
            "selected_keywords": list(self.selected_keywords),
            "can_advance": self.can_advance,
            "generated_review": self.generated_review,
            "is_generating": self.is_generating,
            "is_submitting": self.is_submitting,
            "notice": self.notice,
        }
