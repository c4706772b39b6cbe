"""
Split extracted document text into retrievable passages.

Sections are found at structural boundaries (numbered items, upper-case headers,
bullets) and packed into passages of roughly ``chunk_size`` characters. Sections
that are too long are split on paragraph breaks with a one-paragraph overlap
between consecutive passages. Only whitespace is ever dropped.
"""
import re
from typing import Iterator, List

from .exceptions import EmptyDocumentError

# Lookahead so the boundary text stays at the start of the next section
SECTION_BOUNDARY = re.compile(r"(?=\n\s*\d+\.\s|\n\s*[A-Z][A-Z\s]+:|\n\s*\*\s|\n\s*-\s)")
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

SECTION_JOINER = "\n\n"
FLEX_FACTOR = 1.2


def chunk_text(text: str, chunk_size: int) -> List[str]:
    """
    Split ``text`` into passages of about ``chunk_size`` characters.

    Raises:
        EmptyDocumentError: when the text has no non-whitespace content
        ValueError: when chunk_size is not positive
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not text or not text.strip():
        raise EmptyDocumentError("Unable to extract text from the uploaded file")

    limit = chunk_size * FLEX_FACTOR
    passages: List[str] = []
    buffer = ""

    for section in SECTION_BOUNDARY.split(text):
        section = section.strip()
        if not section:
            continue

        if len(section) > chunk_size:
            if buffer:
                passages.append(buffer)
                buffer = ""
            passages.extend(split_large_section(section, chunk_size))
            continue

        if buffer and len(buffer) + len(SECTION_JOINER) + len(section) > limit:
            passages.append(buffer)
            buffer = section
        else:
            buffer = f"{buffer}{SECTION_JOINER}{section}" if buffer else section

    if buffer:
        passages.append(buffer)

    if not passages:
        raise EmptyDocumentError("Unable to extract text from the uploaded file")
    return passages


def split_large_section(section: str, chunk_size: int) -> List[str]:
    """
    Split one oversized section on paragraph breaks.

    When a passage is emitted, its last paragraph is repeated at the start of
    the next passage if that keeps the next passage within the flex limit.
    """
    limit = chunk_size * FLEX_FACTOR
    pieces: List[str] = []
    for paragraph in PARAGRAPH_BREAK.split(section):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if len(paragraph) > limit:
            pieces.extend(_split_paragraph(paragraph, chunk_size))
        else:
            pieces.append(paragraph)

    chunks: List[str] = []
    current: List[str] = []
    current_len = 0

    for piece in pieces:
        if current and current_len + len(SECTION_JOINER) + len(piece) > chunk_size:
            chunks.append(SECTION_JOINER.join(current))
            overlap = current[-1]
            if len(overlap) + len(SECTION_JOINER) + len(piece) <= limit:
                current = [overlap, piece]
            else:
                current = [piece]
        else:
            current.append(piece)
        current_len = len(SECTION_JOINER.join(current))

    if current:
        chunks.append(SECTION_JOINER.join(current))

    return chunks


def _split_paragraph(paragraph: str, chunk_size: int) -> Iterator[str]:
    """
    Cut a single long paragraph at line, sentence or word boundaries.
    Falls back to a hard cut when a window has no boundary at all.
    """
    n = len(paragraph)
    i = 0
    while i < n:
        j = min(i + chunk_size, n)

        if j >= n:
            piece = paragraph[i:].strip()
            if piece:
                yield piece
            break

        # Try to cut on single newline
        k = paragraph.rfind("\n", i, j)
        if k != -1 and k > i:
            k += 1
        else:
            # Try to cut on sentence end
            k = paragraph.rfind(". ", i, j)
            if k != -1 and k > i and j - k <= 180:
                k += 2
            else:
                # Cut at word boundary
                k = paragraph.rfind(" ", i, j)
                if k <= i or j - k > 180:
                    k = j

        piece = paragraph[i:k].strip()
        if piece:
            yield piece
        i = k
