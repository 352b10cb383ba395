import logging

from django.conf import settings
from openai import OpenAI, OpenAIError

from cms.sanitize import sanitize_post_html

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTIONS = """
You are a writing assistant for a content website.
Write the article the user asks for as an HTML fragment.

Rules:
- Use ONLY these tags: h1, h2, h3, h4, p, strong, ul, li.
- No <html>, <head>, <body>, scripts, styles or inline attributes.
- No markdown and no code fences. Return only the HTML.
"""


class AssistantError(Exception):
    """The language model call failed or returned nothing usable."""


def _client():
    return OpenAI(api_key=getattr(settings, "OPENAI_API_KEY", None) or None)


def _get_model():
    return getattr(settings, "OPENAI_MODEL", "gpt-5-nano")


def _strip_fences(text: str) -> str:
    text = (text or "").strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


def generate_post_html(prompt: str) -> str:
    prompt = (prompt or "").strip()
    if not prompt:
        raise ValueError("Prompt is required")

    try:
        resp = _client().responses.create(
            model=_get_model(),
            input=[
                {"role": "system", "content": SYSTEM_INSTRUCTIONS.strip()},
                {"role": "user", "content": prompt},
            ],
        )
    except OpenAIError as e:
        logger.exception("Content generation failed")
        raise AssistantError("The AI provider could not generate content.") from e

    html = sanitize_post_html(_strip_fences(resp.output_text or ""))
    if not html:
        raise AssistantError("The AI provider returned an empty answer.")
    return html
