"""
Text extraction for each supported source type.
"""

from __future__ import annotations

import io
import re
from typing import Callable, Dict

import docx
from bs4 import BeautifulSoup
from pypdf import PdfReader

from docstore.errors import SourceParseError

SUPPORTED_TYPES = ("pdf", "html", "markdown", "txt", "docx")

HTML_DROP_TAGS = ("script", "style", "noscript", "template", "svg")

MD_FRONT_MATTER = re.compile(r"\A---\n.*?\n---\n", flags=re.DOTALL)
MD_FENCE = re.compile(r"^[ \t]*(```|~~~).*$", flags=re.MULTILINE)
MD_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
MD_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")
MD_HEADING = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]*", flags=re.MULTILINE)
MD_QUOTE = re.compile(r"^[ \t]{0,3}>[ \t]?", flags=re.MULTILINE)
MD_LIST = re.compile(r"^[ \t]*(?:[-*+]|\d+[.)])[ \t]+", flags=re.MULTILINE)
MD_RULE = re.compile(r"^[ \t]*(?:[-*_][ \t]*){3,}$", flags=re.MULTILINE)
MD_EMPHASIS = re.compile(r"(\*\*|\*|~~)(?=\S)(.+?)(?<=\S)\1")
MD_INLINE_CODE = re.compile(r"`([^`]*)`")
MD_HTML_TAG = re.compile(r"<[^>\n]+>")


def clean_text(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t\f\v]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]{2,}", " ", text)
    return text.strip()


def decode_bytes(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def parse_txt(content: bytes) -> str:
    return decode_bytes(content)


def parse_markdown(content: bytes) -> str:
    text = decode_bytes(content)
    text = MD_FRONT_MATTER.sub("", text)
    text = MD_FENCE.sub("", text)
    text = MD_IMAGE.sub(r"\1", text)
    text = MD_LINK.sub(r"\1", text)
    text = MD_RULE.sub("", text)
    text = MD_HEADING.sub("", text)
    text = MD_QUOTE.sub("", text)
    text = MD_LIST.sub("", text)
    text = MD_EMPHASIS.sub(r"\2", text)
    text = MD_INLINE_CODE.sub(r"\1", text)
    return MD_HTML_TAG.sub("", text)


def parse_html(content: bytes) -> str:
    soup = BeautifulSoup(content, "html.parser")
    for tag in soup(HTML_DROP_TAGS):
        tag.decompose()
    body = soup.body or soup
    return body.get_text("\n")


def parse_pdf(content: bytes) -> str:
    reader = PdfReader(io.BytesIO(content))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n\n".join(page for page in pages if page.strip())


def parse_docx(content: bytes) -> str:
    document = docx.Document(io.BytesIO(content))
    parts = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            parts.append(" | ".join(cell.text.strip() for cell in row.cells))
    return "\n\n".join(part for part in parts if part.strip())


PARSERS: Dict[str, Callable[[bytes], str]] = {
    "pdf": parse_pdf,
    "html": parse_html,
    "markdown": parse_markdown,
    "txt": parse_txt,
    "docx": parse_docx,
}


def extract_text(source_type: str, content: bytes) -> str:
    """
    Extract normalised plain text from raw source bytes.
    """
    parser = PARSERS.get(source_type)
    if parser is None:
        raise SourceParseError(f"Unsupported source type: {source_type}")
    try:
        text = parser(content)
    except Exception as exc:
        raise SourceParseError(
            f"Could not parse {source_type} source: {exc}", details={"type": source_type}
        ) from exc

    text = clean_text(text)
    if not text:
        raise SourceParseError(f"No extractable text in {source_type} source", details={"type": source_type})
    return text


__all__ = ["SUPPORTED_TYPES", "clean_text", "extract_text", "parse_markdown", "parse_html"]
