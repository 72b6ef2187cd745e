"""Plain text extraction from HTML bodies and single PDF pages."""

import logging
import re
import subprocess
from enum import Enum
from typing import Union

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from ..errors import ExtractionError

logger = logging.getLogger(__name__)

_SKIPPED_TAGS = ("script", "style")

# A start tag up to its closing '>', allowing '>' inside quoted attribute values
_START_TAG = re.compile(r"""<[^\s/>]+(?:"[^"]*"|'[^']*'|[^'">])*>""")


class SourceKind(str, Enum):
    """Kind of blob handed to the text extractor."""

    HTML = "html"
    PDF_PAGE = "pdf_page"


def _is_self_closing(tag: Tag, markup: str, line_offsets: list[int]) -> bool:
    """Whether the tag was written as <name ... /> in the markup."""
    if tag.sourceline is None or tag.sourcepos is None:
        return False

    match = _START_TAG.match(markup, line_offsets[tag.sourceline - 1] + tag.sourcepos)
    return match is not None and match.group(0).endswith("/>")


def extract_text_from_html(markup: Union[str, bytes]) -> str:
    """Extract all textual content of an HTML page, one line per text node.

    Walks the document in order remembering only the most recently opened
    start tag. Text is dropped while that tag is <script> or <style>, which
    also drops text following a closed script until the next start tag.
    Self-closing tags such as <br/> are not start tags and leave the
    remembered tag unchanged.

    Args:
        markup: HTML document

    Returns:
        str: Stripped, unescaped text nodes each followed by a newline
    """
    if isinstance(markup, bytes):
        markup = markup.decode("utf-8", errors="replace")

    soup = BeautifulSoup(markup, "html.parser")
    line_offsets = [0] + [m.end() for m in re.finditer("\n", markup)]

    lines = []
    last_start_tag = None
    for node in soup.descendants:
        if isinstance(node, Tag):
            if not _is_self_closing(node, markup, line_offsets):
                last_start_tag = node.name
            continue

        # Comments, doctypes, CDATA and processing instructions are not text
        if not isinstance(node, NavigableString) or isinstance(node, PreformattedString):
            continue

        if last_start_tag in _SKIPPED_TAGS:
            continue

        text = node.strip()
        if text:
            lines.append(text + "\n")

    return "".join(lines)


def extract_pdf_page_text(
    pdf_bytes: bytes,
    page_number: int = 1,
    timeout: float = 30.0,
    binary: str = "pdftotext",
) -> str:
    """Render the text layer of one PDF page using the pdftotext CLI.

    Args:
        pdf_bytes: Raw PDF file contents, piped to stdin
        page_number: 1-indexed page to render
        timeout: Seconds before the renderer is killed
        binary: pdftotext executable name or path

    Returns:
        str: UTF-8 text of the page

    Raises:
        ExtractionError: If the renderer is missing, fails, warns or times out
    """
    if page_number < 1:
        raise ExtractionError(f"Invalid PDF page number: {page_number}")

    page = str(page_number)
    cmd = [binary, "-f", page, "-l", page, "-enc", "UTF-8", "-", "-"]

    try:
        result = subprocess.run(
            cmd,
            input=pdf_bytes,
            capture_output=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as e:
        raise ExtractionError(f"PDF renderer not found: {binary}") from e
    except subprocess.TimeoutExpired as e:
        raise ExtractionError(f"PDF renderer timed out after {timeout}s") from e

    stderr = result.stderr.decode("utf-8", errors="replace").strip()
    if result.returncode != 0:
        raise ExtractionError(
            f"PDF renderer exited with code {result.returncode}: {stderr}"
        )
    if stderr:
        raise ExtractionError(f"PDF renderer reported an error: {stderr}")

    text = result.stdout.decode("utf-8", errors="replace")
    logger.debug(f"Extracted {len(text)} characters from PDF page {page_number}")
    return text


class TextExtractor:
    """Converts an HTML body or one PDF page into plain text."""

    def __init__(self, pdftotext_binary: str = "pdftotext", timeout: float = 30.0):
        """Initialize the extractor.

        Args:
            pdftotext_binary: pdftotext executable name or path
            timeout: Seconds allowed for rendering a PDF page
        """
        self.pdftotext_binary = pdftotext_binary
        self.timeout = timeout

    def extract_plain_text(
        self,
        source_kind: SourceKind,
        blob: Union[str, bytes],
        page_number: int = 1,
    ) -> str:
        if source_kind == SourceKind.HTML:
            return extract_text_from_html(blob)

        if source_kind == SourceKind.PDF_PAGE:
            if isinstance(blob, str):
                raise ExtractionError("PDF content must be bytes")
            return extract_pdf_page_text(
                blob,
                page_number=page_number,
                timeout=self.timeout,
                binary=self.pdftotext_binary,
            )

        raise ExtractionError(f"Unsupported source kind: {source_kind}")
