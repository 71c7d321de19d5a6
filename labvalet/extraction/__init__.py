"""
LabValet Extraction Module

Turns lab announcements into LabEntry records:

    from labvalet.extraction import CanonicalTextNormalizer, ScheduleExtractor

    extractor = ScheduleExtractor(CanonicalTextNormalizer(llm_client))
    entries = await extractor.extract(slack_text)
"""

from .extractor import DOC_LINK, ScheduleExtractor, find_doc_link, parse_due_date
from .models import LabEntry
from .normalizer import CANONICAL_LINE, CanonicalTextNormalizer, is_canonical

__all__ = [
    "ScheduleExtractor",
    "CanonicalTextNormalizer",
    "LabEntry",
    "CANONICAL_LINE",
    "DOC_LINK",
    "find_doc_link",
    "is_canonical",
    "parse_due_date",
]
