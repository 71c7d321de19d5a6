"""
Canonical Text Normalizer - LLM rewrite of lab announcements

Rewrites free-form Slack text into one canonical line per lab:

    Lab {N} ({Title}) due {Month} {Day}, {Year} {Time}.

Normalization is best-effort. When the model call fails or returns
nothing, the raw text is returned and the parser works with it as is.
Text that is already canonical is returned unchanged without a model
call, so normalizing canonical output again is a no-op.
"""

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional
from zoneinfo import ZoneInfo

from ..constants import DEFAULT_TIMEZONE

if TYPE_CHECKING:
    from ..protocols import LLMClientProtocol

logger = logging.getLogger(__name__)

# Matches one canonical line (search semantics, case-insensitive)
CANONICAL_LINE = re.compile(r"Lab (\d+) \(([^)]+)\) due (.+)\.", re.IGNORECASE)

NORMALIZER_PROMPT = """\
You are a text normalizer for Slack messages about lab deadlines.

Rewrite the following message into this exact canonical format:
"Lab {{number}} ({{title}}) due {{Month}} {{Day}}, {{Year}} {{Time AM/PM}}."

Rules:
1. Remove filler words like "is", "this", "night", "both", "and", "for", etc.
2. Remove weekdays like Sunday, Monday, etc.
3. Convert month abbreviations (e.g., "Nov" -> "November").
4. Convert vague times like "midnight" -> "11:59 PM" and "noon" -> "12:00 PM".
5. Always include the current year ({year}) if none is specified.
6. If there are multiple labs, write each one on its own line in canonical form.
7. Never add commentary or explanations. Output ONLY the formatted text.

Examples:
Bad: "yo @channel lab 15 (BST Maps) due Fri night 11:59pm (Nov 21)"
Good: "Lab 15 (BST Maps) due November 21, {year} 11:59 PM."

Bad: "Lab 16 Binary Search Trees - code & conceptual both due dec 2 midnight"
Good: "Lab 16 (Binary Search Trees) due December 2, {year} 11:59 PM."

Message:
\"\"\"{message}\"\"\"
"""


def is_canonical(text: str) -> bool:
    """True when every non-blank line already matches the canonical grammar."""
    lines = [line for line in (text or "").splitlines() if line.strip()]
    return bool(lines) and all(CANONICAL_LINE.search(line) for line in lines)


def _clean_output(text: str) -> str:
    """Strip wrapping quotes and code fences the model sometimes adds."""
    lines = []
    for line in text.strip().splitlines():
        stripped = line.strip()
        if stripped.startswith("```"):
            continue
        if len(stripped) >= 2 and stripped[0] == stripped[-1] == '"':
            stripped = stripped[1:-1].strip()
        lines.append(stripped)
    return "\n".join(lines).strip()


class CanonicalTextNormalizer:
    """
    Normalizes lab announcements with a chat model.

    Implements NormalizerProtocol.

    Usage:
        normalizer = CanonicalTextNormalizer(llm_client)
        canonical = await normalizer.normalize("lab 15 (BST Maps) due Fri 11:59pm (Nov 21)")
    """

    def __init__(
        self,
        llm_client: "LLMClientProtocol",
        timezone_name: str = DEFAULT_TIMEZONE,
        temperature: float = 0.0,
        max_tokens: int = 512,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.llm_client = llm_client
        self.timezone_name = timezone_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._clock = clock or (lambda: datetime.now(ZoneInfo(self.timezone_name)))

    def build_prompt(self, text: str) -> str:
        return NORMALIZER_PROMPT.format(year=self._clock().year, message=text)

    async def normalize(self, text: str) -> str:
        """Return canonical text, or ``text`` itself when rewriting is not possible."""
        if not text or not text.strip():
            return text
        if is_canonical(text):
            logger.debug("Input already canonical, skipping model call")
            return text

        try:
            response = await self.llm_client.chat_completion(
                messages=[{"role": "user", "content": self.build_prompt(text)}],
                config={"temperature": self.temperature, "max_tokens": self.max_tokens},
            )
        except Exception as e:
            logger.warning(f"Normalization failed, using raw text: {e}", exc_info=True)
            return text

        normalized = _clean_output(getattr(response, "content", None) or "")
        if not normalized:
            logger.warning("Normalizer returned empty output, using raw text")
            return text

        logger.info(f"Normalized message: {normalized!r}")
        return normalized
