"""HTTP clients for the services LabValet writes to and reads from."""

from .google_docs import GoogleDocsClient, extract_document_id, summarize_document
from .notion import NotionClient, build_lab_toggle, build_schedule_properties

__all__ = [
    "GoogleDocsClient",
    "NotionClient",
    "build_lab_toggle",
    "build_schedule_properties",
    "extract_document_id",
    "summarize_document",
]
