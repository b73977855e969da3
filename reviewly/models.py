"""Business record, keyword and contact-form dataclasses plus the step graph."""

from dataclasses import dataclass


STEPS = (
    "experience",
    "keywords",
    "review",
    "feedback",
    "contact",
)

INITIAL_STEP = "experience"

# Forward and back moves allowed out of each step
TRANSITIONS = {
    "experience": ("keywords", "feedback"),
    "keywords": ("experience", "review"),
    "review": ("keywords",),
    "feedback": ("experience", "contact"),
    "contact": ("feedback",),
}

BACK_STEPS = {
    "keywords": "experience",
    "review": "keywords",
    "feedback": "experience",
    "contact": "feedback",
}

# Steps shown as dots in the progress bar (positive path only)
PROGRESS_STEPS = ("experience", "keywords", "review")


@dataclass(frozen=True)
class Business:
    id: str
    business_name: str
    client_email: str
    theme_colour: str  # CSS colour, e.g. "#e11d48"
    google_reviews_link: str
    keywords: str  # comma-delimited, e.g. "fast service, friendly staff"
    client_name: str = ""

    @classmethod
    def from_record(cls, record: dict) -> "Business":
        """Build from a `clients` row; missing text columns become ""."""
        return cls(
            id=str(record["id"]),
            business_name=record.get("business_name") or "",
            client_email=record.get("client_email") or "",
            theme_colour=record.get("theme_colour") or "",
            google_reviews_link=record.get("google_reviews_link") or "",
            keywords=record.get("keywords") or "",
            client_name=record.get("client_name") or "",
        )


@dataclass(frozen=True)
class Keyword:
    id: str  # 1-based position in the business's keyword string
    keyword: str


@dataclass
class ContactForm:
    email: str = ""
    message: str = ""

    @property
    def is_complete(self) -> bool:
        return bool(self.email.strip()) and bool(self.message.strip())

    @property
    def customer_name(self) -> str:
        """Local part of the submitter's email, used as a display name."""
        return self.email.split("@")[0]

    def clear(self):
        self.email = ""
        self.message = ""


def parse_keywords(keyword_string: str) -> list[Keyword]:
    """
    Split a business's comma-delimited keyword string into Keyword entries.

    One entry per comma-separated segment, trimmed, numbered from "1".

    >>> [k.keyword for k in parse_keywords("fast service, friendly staff")]
    ['fast service', 'friendly staff']
    """
    if not keyword_string:
        return []
    return [
        Keyword(id=str(i + 1), keyword=segment.strip())
        for i, segment in enumerate(keyword_string.split(","))
    ]
