# docchat/memory/loader.py

"""
Text extraction for uploaded documents.

Architecture contract preserved:
loader → chunker → embedder → vector_store

Supports:
- PDF files (pypdf)
- Word documents, DOCX and DOC (python-docx)
- Plain text
"""

import logging
from io import BytesIO

from docx import Document as DocxDocument
from pypdf import PdfReader

from docchat.config import ALLOWED_CONTENT_TYPES
from docchat.errors import IngestionError, IngestionErrorKind

logger = logging.getLogger(__name__)


# ============================================================
# PDF LOADER
# ============================================================

def load_pdf_text(content: bytes) -> str:

    reader = PdfReader(BytesIO(content))

    parts = []

    for page in reader.pages:

        text = page.extract_text()

        if text:
            parts.append(text)

    return "\n".join(parts)


# ============================================================
# DOCX LOADER
# ============================================================

def load_docx_text(content: bytes) -> str:

    document = DocxDocument(BytesIO(content))

    parts = [
        paragraph.text
        for paragraph in document.paragraphs
        if paragraph.text.strip()
    ]

    for table in document.tables:

        for row in table.rows:

            row_text = " | ".join(cell.text.strip() for cell in row.cells)

            if row_text.replace("|", "").strip():
                parts.append(row_text)

    return "\n".join(parts)


# ============================================================
# PLAIN TEXT LOADER
# ============================================================

def load_plain_text(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


_LOADERS = {
    "pdf": load_pdf_text,
    "docx": load_docx_text,
    "text": load_plain_text,
}


# ============================================================
# UNIFIED ENTRY POINT
# ============================================================

def is_supported(content_type: str) -> bool:
    return content_type in ALLOWED_CONTENT_TYPES


def extract_text(content: bytes, content_type: str) -> str:
    """
    Extract plain text from raw document bytes.

    Raises:
        IngestionError: UNSUPPORTED_TYPE for unknown MIME types,
            EXTRACTION_FAILED when the parser rejects the file.
    """

    if not is_supported(content_type):
        raise IngestionError(
            IngestionErrorKind.UNSUPPORTED_TYPE,
            f"File type {content_type} not supported. Supported types: PDF, DOCX, TXT",
        )

    loader = _LOADERS[ALLOWED_CONTENT_TYPES[content_type]]

    try:

        text = loader(content)

    except Exception as e:

        logger.error(
            "Text extraction failed",
            extra={"content_type": content_type, "error": str(e)},
        )

        raise IngestionError(
            IngestionErrorKind.EXTRACTION_FAILED,
            f"Failed to extract text from file: {e}",
        ) from e

    logger.info(
        "Text extracted",
        extra={"content_type": content_type, "characters": len(text)},
    )

    return text
