"""HTML-to-text conversion for email bodies.

Marketplace emails are frequently HTML-only with no text/plain MIME part.
Order-number matching runs against readable text, so the HTML is flattened
here before extraction.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup


def html_to_text(html: str | None) -> str:
    """Convert HTML email body to plain text.

    Args:
        html: Raw HTML string from email body.

    Returns:
        Plain text extracted from the HTML, one block element per line.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(["script", "style", "head"]):
        tag.decompose()

    text = soup.get_text(separator="\n")

    # Collapse whitespace: multiple blank lines -> single, strip each line
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
