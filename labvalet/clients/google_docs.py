"""
Google Docs API Client - Fetch and summarize documents linked from lab posts.

Authenticates with a bearer access token (GOOGLE_ACCESS_TOKEN); obtaining
the token is left to the deployment.
"""

import logging
import os
import re
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

DOCS_API = "https://docs.googleapis.com/v1"

_DOC_ID = re.compile(r"/d/([a-zA-Z0-9_-]+)")


def extract_document_id(url: str) -> Optional[str]:
    """Document id from a docs.google.com URL, or None."""
    match = _DOC_ID.search(url or "")
    return match.group(1) if match else None


def summarize_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reduce a Docs API document to title, summary, headings and links.

    The summary is the first non-empty NORMAL_TEXT paragraph; headings are
    all HEADING_* paragraphs; links are every hyperlink in paragraph text.
    """
    title = doc.get("title") or "Untitled"
    summary = ""
    headings: List[str] = []
    links: List[str] = []

    for element in (doc.get("body") or {}).get("content") or []:
        paragraph = element.get("paragraph")
        if not paragraph:
            continue
        style = (paragraph.get("paragraphStyle") or {}).get("namedStyleType") or ""
        runs = paragraph.get("elements") or []
        text = "".join((run.get("textRun") or {}).get("content", "") for run in runs).strip()

        if not summary and style == "NORMAL_TEXT" and text:
            summary = text
        if style.startswith("HEADING_") and text:
            headings.append(text)

        for run in runs:
            url = (((run.get("textRun") or {}).get("textStyle") or {}).get("link") or {}).get("url")
            if url:
                links.append(url)

    return {"title": title, "summary": summary, "links": links, "headings": headings}


class GoogleDocsClient:
    """Async Google Docs REST API client."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token or os.getenv("GOOGLE_ACCESS_TOKEN", "")
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.access_token)

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def get_document(self, document_id: str) -> Dict[str, Any]:
        """Get full document content."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await client.get(
                f"{DOCS_API}/documents/{document_id}",
                headers=self._headers,
                timeout=15.0,
            )
            resp.raise_for_status()
            return resp.json()
