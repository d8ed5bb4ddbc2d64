"""
PDF text extraction with PyMuPDF.

Page text comes first, followed by every hyperlink found in the file, one per
line. Links are collected from page link annotations and from a scan of the
raw bytes, since contact links are often only present as URI actions.
"""

import re
from typing import List

import fitz  # PyMuPDF

RAW_URL_PATTERN = re.compile(r"https?://[^\s<>'\")]+")


def _page_texts(document: "fitz.Document") -> List[str]:
    return [page.get_text() for page in document]


def _annotation_links(document: "fitz.Document") -> List[str]:
    uris = []
    for page in document:
        for link in page.get_links():
            uri = link.get("uri")
            if uri:
                uris.append(uri)
    return uris


def scan_raw_urls(data: bytes) -> List[str]:
    """Find URL-like substrings in the undecoded file bytes."""
    return RAW_URL_PATTERN.findall(data.decode("latin-1"))


def _dedupe(urls: List[str]) -> List[str]:
    seen = set()
    unique = []
    for url in urls:
        key = url.lower()
        if key not in seen:
            seen.add(key)
            unique.append(url)
    return unique


def extract_pdf_text(data: bytes) -> str:
    """
    Extract text and hyperlinks from a PDF.

    Args:
        data: Raw PDF bytes

    Returns:
        Page text joined by newlines, with one discovered URL per trailing line

    Raises:
        Exception: Whatever PyMuPDF raises for unreadable documents
    """
    with fitz.open(stream=data, filetype="pdf") as document:
        text = "\n".join(_page_texts(document))
        links = _annotation_links(document)

    links.extend(scan_raw_urls(data))
    for url in _dedupe(links):
        text += "\n" + url
    return text
