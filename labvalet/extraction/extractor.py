"""
Schedule Extractor - Canonical lab lines to LabEntry records

Pipeline:
    1. Normalize the raw text (best-effort, see CanonicalTextNormalizer)
    2. Split into non-blank lines and match each against the canonical grammar
    3. Parse the due date in the configured timezone and convert to UTC
    4. Attach the Google Docs link found in the raw text to every entry

Lines that do not match, or whose date does not parse, are skipped; the
rest of the batch still produces entries. Entries keep line order and are
not deduplicated.
"""

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo

from ..constants import DEFAULT_TIMEZONE
from ..protocols import NormalizerProtocol
from .models import LabEntry
from .normalizer import CANONICAL_LINE

logger = logging.getLogger(__name__)

DOC_LINK = re.compile(r"(https://docs\.google\.com/document/[^\s>]+)", re.IGNORECASE)

# Tried in order; full month names first
DATE_FORMATS = (
    "%B %d, %Y %I:%M %p",
    "%B %d, %Y %I:%M%p",
    "%B %d, %Y %I %p",
    "%B %d, %Y %H:%M",
    "%B %d, %Y",
    "%b %d, %Y %I:%M %p",
    "%b %d, %Y %I:%M%p",
    "%b %d, %Y %I %p",
    "%b %d, %Y %H:%M",
    "%b %d, %Y",
)


def find_doc_link(text: str) -> Optional[str]:
    """First Google Docs document URL in ``text``."""
    match = DOC_LINK.search(text or "")
    return match.group(1) if match else None


def parse_due_date(value: str, timezone_name: str = DEFAULT_TIMEZONE) -> Optional[datetime]:
    """
    Parse a canonical due date as local time in ``timezone_name``.

    Returns:
        Aware datetime in UTC, or None if no format matches
    """
    cleaned = " ".join(value.split()).rstrip(".").strip()
    for fmt in DATE_FORMATS:
        try:
            naive = datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
        local = naive.replace(tzinfo=ZoneInfo(timezone_name))
        return local.astimezone(timezone.utc)
    return None


class ScheduleExtractor:
    """
    Extracts LabEntry records from lab announcements.

    Usage:
        extractor = ScheduleExtractor(normalizer)
        entries = await extractor.extract(slack_text)

        # Already-canonical text, no model involved
        entries = extractor.parse("Lab 15 (BST Maps) due November 21, 2025 11:59 PM.")
    """

    def __init__(
        self,
        normalizer: Optional[NormalizerProtocol] = None,
        timezone_name: str = DEFAULT_TIMEZONE,
    ):
        self.normalizer = normalizer
        self.timezone_name = timezone_name

    async def extract(self, text: str) -> List[LabEntry]:
        """Normalize ``text`` and parse it into entries."""
        canonical = text
        if self.normalizer is not None:
            try:
                canonical = await self.normalizer.normalize(text)
            except Exception as e:
                logger.warning(f"Normalizer raised, parsing raw text: {e}", exc_info=True)
                canonical = text
            if not canonical or not canonical.strip():
                canonical = text
        return self.parse(canonical, source_text=text)

    def parse(self, canonical: str, source_text: Optional[str] = None) -> List[LabEntry]:
        """
        Parse canonical text.

        Args:
            canonical: Normalized text, one lab per line
            source_text: Original message scanned for the doc link
                (defaults to ``canonical``)
        """
        doc_link = find_doc_link(source_text if source_text is not None else canonical)
        entries: List[LabEntry] = []

        for line in (canonical or "").splitlines():
            if not line.strip():
                continue
            match = CANONICAL_LINE.search(line)
            if not match:
                logger.debug(f"Skipping non-canonical line: {line!r}")
                continue

            number_text, title, due_text = match.groups()
            due_date = parse_due_date(due_text, self.timezone_name)
            if due_date is None:
                logger.warning(f"Invalid date for lab {number_text}: {due_text!r}")
                continue

            try:
                entry = LabEntry(
                    lab_number=int(number_text),
                    title=title.strip(),
                    due_date=due_date,
                    doc_link=doc_link,
                )
            except ValueError as e:
                logger.warning(f"Skipping lab {number_text}: {e}")
                continue

            logger.info(f"Parsed Lab {entry.lab_number}: {entry.title} due {entry.due_date_iso}")
            entries.append(entry)

        logger.info(f"Total labs parsed: {len(entries)}")
        return entries
