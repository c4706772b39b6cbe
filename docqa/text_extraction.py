import io
from typing import Tuple

from pypdf import PdfReader
from docx import Document as DocxDocument

from .exceptions import TextExtractionError, UnsupportedFileTypeError

SUPPORTED_EXTENSIONS = ("pdf", "docx", "txt")


def file_extension(filename: str) -> str:
    """Lower-cased extension without the dot, or "" when there is none."""
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].lower()


def read_text_from_pdf(data: bytes) -> str:
    pdf = PdfReader(io.BytesIO(data))
    parts = []
    for page in pdf.pages:
        parts.append(page.extract_text() or "")
    return "\n".join(parts)


def read_text_from_docx(data: bytes) -> str:
    """
    Extract text from DOCX file including both paragraphs and tables.
    Tables are converted to readable text format.
    """
    doc = DocxDocument(io.BytesIO(data))
    parts = []

    for para in doc.paragraphs:
        text = para.text.strip()
        if text:
            parts.append(text)

    for table in doc.tables:
        table_text = extract_table_text(table)
        if table_text:
            parts.append(table_text)

    return "\n\n".join(parts)


def extract_table_text(table) -> str:
    """
    Convert a DOCX table to readable text format.
    Each row is preserved with clear separators.
    """
    lines = []

    for row in table.rows:
        cells = [cell.text.strip() for cell in row.cells]

        # Skip completely empty rows
        if not any(cells):
            continue

        lines.append(" | ".join(cells))

    return "\n".join(lines)


def read_text_from_txt(data: bytes, encoding="utf-8") -> str:
    return data.decode(encoding, errors="replace")


def read_any(data: bytes, filename: str) -> Tuple[str, str]:
    """
    Extract text based on the file extension.

    Returns:
        Tuple of (text, extension)

    Raises:
        UnsupportedFileTypeError: extension is not pdf, docx or txt
        TextExtractionError: the file could not be parsed
    """
    kind = file_extension(filename)
    if kind not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileTypeError(f"Unsupported file format: {kind or 'none'}")

    try:
        if kind == "pdf":
            return read_text_from_pdf(data), kind
        if kind == "docx":
            return read_text_from_docx(data), kind
        return read_text_from_txt(data), kind
    except Exception as e:
        raise TextExtractionError(f"Failed to extract text from {filename}: {e}") from e
