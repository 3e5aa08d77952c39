# --- Content Extraction ---
import io
import logging
import re
from typing import Optional

import httpx
from docx import Document as DocxDocument

from functions.errors import ExtractionError, InvalidSourceUrl, SourceUnreachable

logger = logging.getLogger(__name__)

GOOGLE_DOC_ID_RE = re.compile(r"/d/([a-zA-Z0-9-_]+)")
GOOGLE_EXPORT_URL = "https://docs.google.com/document/d/{doc_id}/export?format={fmt}"
FETCH_TIMEOUT_S = 30.0


def extract_document_id(url: str) -> str:
    """Pull the document id out of a Google Docs sharing URL."""
    match = GOOGLE_DOC_ID_RE.search(url or "")
    if not match:
        raise InvalidSourceUrl("Invalid Google Docs URL")
    return match.group(1)


def extract_docx_text(data: bytes) -> str:
    """
    Extract plain text from DOCX bytes. Only paragraph text survives;
    empty paragraphs are dropped and the rest are separated by blank lines.
    """
    try:
        doc = DocxDocument(io.BytesIO(data))
    except Exception as e:
        raise ExtractionError(f"Failed to read DOCX document: {e}") from e

    text_parts = []
    for para in doc.paragraphs:
        text = para.text.strip()
        if text:
            text_parts.append(text)
    return "\n\n".join(text_parts)


def extract_markdown_text(data: bytes) -> str:
    """Decode Markdown bytes as UTF-8."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ExtractionError(f"Markdown file is not valid UTF-8: {e}") from e


def extract_upload_text(filename: str, data: bytes) -> str:
    """Dispatch an uploaded file to the extractor matching its extension."""
    name = (filename or "").lower()
    if name.endswith(".docx"):
        return extract_docx_text(data)
    if name.endswith(".md"):
        return extract_markdown_text(data)
    raise ExtractionError(f"Unsupported file type: {filename}")


async def fetch_google_docs_content(
    url: str,
    export_format: str = "docx",
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    Fetch a publicly shared Google Doc through its export endpoint and
    return its text. DOCX exports go through structured extraction.
    """
    doc_id = extract_document_id(url)
    export_url = GOOGLE_EXPORT_URL.format(doc_id=doc_id, fmt=export_format)
    logger.info("Fetching Google Docs export %s (format=%s)", doc_id, export_format)

    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(follow_redirects=True, timeout=FETCH_TIMEOUT_S)
    try:
        response = await client.get(export_url)
    except httpx.HTTPError as e:
        raise SourceUnreachable(
            f"Failed to fetch Google Docs content ({e}). Make sure the document is publicly accessible."
        ) from e
    finally:
        if own_client:
            await client.aclose()

    if not response.is_success:
        logger.warning("Google Docs export %s returned HTTP %s", doc_id, response.status_code)
        raise SourceUnreachable(
            "Failed to fetch Google Docs content. Make sure the document is publicly accessible."
        )

    if export_format == "docx":
        return extract_docx_text(response.content)
    return response.text
