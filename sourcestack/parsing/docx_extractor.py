"""DOCX text extraction with python-docx."""

import io

from docx import Document
from docx.oxml.ns import qn


def extract_docx_text(data: bytes) -> str:
    """
    Concatenate the text runs of every paragraph in document order.

    Paragraphs nested in tables are included. Blank paragraphs are dropped
    and the rest are joined with newlines.
    """
    document = Document(io.BytesIO(data))
    lines = []
    for paragraph in document.element.body.iter(qn("w:p")):
        text = "".join(node.text or "" for node in paragraph.iter(qn("w:t")))
        if text.strip():
            lines.append(text)
    return "\n".join(lines)
