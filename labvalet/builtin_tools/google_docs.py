"""
Google Docs Tools - Summarize a lab's Google Doc.
"""

import logging
from typing import Any, Dict

import httpx

from ..clients.google_docs import GoogleDocsClient, extract_document_id, summarize_document
from ..constants import TOOL_PARSE_GOOGLE_DOC
from ..tools.models import ToolCategory, ToolDefinition, ToolExecutionContext, ToolExecutionError
from ..tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def register_google_docs_tools(registry: ToolRegistry, client: GoogleDocsClient) -> None:
    """Register parse_google_doc."""

    async def parse_google_doc_executor(args: dict, context: ToolExecutionContext) -> Dict[str, Any]:
        document_id = extract_document_id(args["url"])
        if not document_id:
            raise ToolExecutionError("Invalid Google Docs URL.")
        if not client.configured:
            raise ToolExecutionError("Google credentials missing.")
        try:
            doc = await client.get_document(document_id)
        except httpx.HTTPStatusError as e:
            raise ToolExecutionError(f"Doc fetch failed: {e.response.text}") from e
        summary = summarize_document(doc)
        logger.info(f"Summarized Google Doc {document_id}: {summary['title']}")
        return summary

    registry.register(ToolDefinition(
        name=TOOL_PARSE_GOOGLE_DOC,
        description=(
            "Fetch a Google Doc and return its title, first paragraph as summary, "
            "headings and links."
        ),
        parameters={
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "docs.google.com document URL"},
            },
            "required": ["url"],
        },
        executor=parse_google_doc_executor,
        category=ToolCategory.DOCUMENTS,
    ))
