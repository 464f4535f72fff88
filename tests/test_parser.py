import io

import docx
import pytest

from docstore.errors import SourceParseError
from docstore.indexing.parser import clean_text, extract_text


def test_txt_is_decoded_and_normalised():
    raw = "Line one   \r\n\r\n\r\n\r\nLine\t\ttwo".encode("utf-8")

    assert extract_text("txt", raw) == "Line one\n\nLine two"


def test_latin1_fallback():
    assert extract_text("txt", "café".encode("latin-1")) == "café"


def test_markdown_markup_is_stripped():
    source = b"""---
title: Notes
---
# Heading

Some **bold** text with a [link](https://example.com) and `code`.

- first item
- second item

> quoted line

```python
print("hi")
```
snake_case_name stays
"""
    text = extract_text("markdown", source)

    assert "title:" not in text
    assert "Heading" in text and "#" not in text
    assert "Some bold text with a link and code." in text
    assert "first item\nsecond item" in text
    assert "quoted line" in text and ">" not in text
    assert "```" not in text
    assert 'print("hi")' in text
    assert "snake_case_name stays" in text


def test_html_drops_scripts_and_styles():
    source = b"""<html><head><title>T</title><style>body { color: red; }</style></head>
<body><h1>Title</h1><script>alert('x')</script><p>First paragraph.</p><p>Second.</p></body></html>"""

    text = extract_text("html", source)

    assert "Title" in text
    assert "First paragraph." in text
    assert "alert" not in text
    assert "color" not in text


def test_docx_paragraphs_and_tables():
    document = docx.Document()
    document.add_paragraph("Opening paragraph.")
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "left"
    table.rows[0].cells[1].text = "right"
    buffer = io.BytesIO()
    document.save(buffer)

    text = extract_text("docx", buffer.getvalue())

    assert "Opening paragraph." in text
    assert "left | right" in text


def test_corrupt_pdf_is_a_parse_error():
    with pytest.raises(SourceParseError) as exc:
        extract_text("pdf", b"not a pdf at all")

    assert exc.value.status_code == 422


def test_empty_document_is_a_parse_error():
    with pytest.raises(SourceParseError):
        extract_text("html", b"<html><body><script>x()</script></body></html>")


def test_clean_text_collapses_blank_lines():
    assert clean_text("a\n\n\n\nb  c ") == "a\n\nb c"
