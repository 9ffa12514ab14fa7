"""Plain text from curriculum and resource files, for use in prompts.

Extraction never raises: unreadable or unsupported files come back as a
bracketed note so the prompt still says which file was attached.
"""

import io
import logging
import os

import pdfplumber
import requests
from bs4 import BeautifulSoup
from docx import Document

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
                  "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
}
REQUEST_TIMEOUT = 30

TEXT_EXTENSIONS = ("txt", "csv", "md", "json")
HTML_EXTENSIONS = ("html", "htm")


def _extension(file_name: str) -> str:
    return os.path.splitext(file_name or "")[1].lstrip(".").lower()


def _docx_text(data: bytes) -> str:
    """Paragraphs in order, then table rows with cells joined by ' | '."""
    doc = Document(io.BytesIO(data))
    lines = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = []
            for cell in row.cells:
                text = " ".join(cell.text.split())
                # merged cells repeat in row.cells
                if not cells or cells[-1] != text:
                    cells.append(text)
            if any(cells):
                lines.append(" | ".join(cells))
    if not lines:
        return "[Empty DOCX file]"
    return "\n".join(lines)


def _pdf_text(data: bytes) -> str:
    pages = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for i, page in enumerate(pdf.pages, 1):
            text = page.extract_text() or ""
            if text.strip():
                pages.append(f"--- Page {i} ---\n{text}\n")
    return "\n".join(pages)


def _html_text(data: bytes) -> str:
    soup = BeautifulSoup(data, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    lines = [line.strip() for line in soup.get_text("\n").splitlines()]
    return "\n".join(line for line in lines if line)


def extract_text(source, file_name: str) -> str:
    """Text content of a file given as a path or raw bytes.

    Args:
        source: Filesystem path or the file's bytes.
        file_name: Original file name; its extension picks the parser.
    """
    ext = _extension(file_name)
    try:
        if isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        else:
            with open(source, "rb") as f:
                data = f.read()

        if ext == "docx":
            text = _docx_text(data)
        elif ext == "pdf":
            text = _pdf_text(data)
        elif ext in HTML_EXTENSIONS:
            text = _html_text(data)
        elif ext in TEXT_EXTENSIONS:
            text = data.decode("utf-8", errors="replace")
        else:
            return f"[Content extraction for .{ext} files is not currently supported. File: {file_name}]"
    except Exception as e:
        logger.error("Error reading file %s: %s", file_name, e)
        return f"[Error reading file {file_name}: {e}]"

    logger.info("Extracted %d chars from %s", len(text), file_name)
    return text


def url_file_name(url: str) -> str:
    """Last path segment of a URL, without the query string."""
    return url.rstrip("/").split("/")[-1].split("?")[0] or "download"


def extract_text_from_url(url: str, file_name: str = None) -> str:
    """Download ``url`` and extract its text; the name defaults to the URL's last segment."""
    file_name = file_name or url_file_name(url)
    try:
        resp = requests.get(url, headers=HEADERS, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error("Failed to fetch %s: %s", url, e)
        return f"[Error reading file {file_name}: {e}]"
    return extract_text(resp.content, file_name)
