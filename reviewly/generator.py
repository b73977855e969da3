"""Review drafting via Haiku, with a deterministic fallback."""

import anthropic

from .config import DEFAULT_MODEL, Settings, require

SYSTEM_PROMPT = (
    "You are a helpful assistant that writes authentic, natural-sounding "
    "customer reviews."
)

USER_PROMPT = """\
Generate a genuine, positive Google review for "{business_name}". The customer specifically appreciated: {keywords}.

Requirements:
- Write in first person as a satisfied customer
- Sound natural and conversational, not overly promotional
- Keep it between 100-150 words
- Include specific details based on the keywords
- End with a recommendation or intention to return
- Use varied sentence structure
- Avoid clichés and generic phrases"""

# 150 words of English is roughly 200 tokens; leave headroom so drafts aren't cut mid-sentence
MAX_TOKENS = 300
TEMPERATURE = 0.8


def build_prompt(business_name: str, keywords: list[str]) -> str:
    return USER_PROMPT.format(business_name=business_name, keywords=", ".join(keywords))


def fallback_review(business_name: str, keywords: list[str]) -> str:
    """
    Review text used when the model call fails.

    >>> fallback_review("Sushi Grill", ["friendly staff", "great food", "decor"])[:60]
    'I had an amazing experience at Sushi Grill! The friendly staf'
    """
    highlights = " and ".join(keywords[:2]) or "service"
    return (
        f"I had an amazing experience at {business_name}! "
        f"The {highlights} really stood out. "
        "I'll definitely be coming back and recommending this place to friends and family. "
        "Highly recommend!"
    )


class ReviewGenerator:
    def __init__(self, client, model: str = DEFAULT_MODEL):
        self._client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReviewGenerator":
        api_key = require(settings.anthropic_api_key, "ANTHROPIC_API_KEY")
        client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=settings.generation_timeout,
            max_retries=0,
        )
        return cls(client, model=settings.model)

    async def generate(self, business_name: str, keywords: list[str]) -> str:
        """
        Draft a review for `business_name` steered by the selected keywords.

        Raises anthropic.APIError on API/transport failure and ValueError if
        the model returns no text.
        """
        response = await self._client.messages.create(
            model=self.model,
            max_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_prompt(business_name, keywords)}],
        )

        if not response.content:
            raise ValueError("Model returned no content.")
        text = response.content[0].text.strip()
        if not text:
            raise ValueError("Model returned an empty review.")
        return text
