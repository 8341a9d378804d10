"""Text extraction for uploaded worksheets and answer keys.

Responsibilities:
- Dispatch on file extension to the right extraction library
- Extract PDF text page by page (selectable text only)
- Extract DOCX paragraphs and table cells
- OCR images (photos or scans of worksheets)
- Detect content language
- Flag PDFs that look scanned (no selectable text)

Dependencies:
- pymupdf (fitz)
- python-docx
- pytesseract + Pillow (requires the tesseract binary)
- langdetect
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from pathlib import PurePath

import docx
import fitz
import pytesseract
import structlog
from langdetect import DetectorFactory, LangDetectException, detect
from PIL import Image, UnidentifiedImageError

# Make langdetect deterministic
DetectorFactory.seed = 0

logger = structlog.get_logger(__name__)

# Constants
PDF_EXTENSIONS = {"pdf"}
DOCX_EXTENSIONS = {"docx"}
IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "bmp", "tiff", "webp"}
TEXT_EXTENSIONS = {"txt"}
SUPPORTED_EXTENSIONS = PDF_EXTENSIONS | DOCX_EXTENSIONS | IMAGE_EXTENSIONS | TEXT_EXTENSIONS

OCR_LANGUAGE = "eng"
MIN_CHARS_PER_PAGE = 20  # Worksheets are sparse; below this a page counts as empty
SCANNED_PDF_THRESHOLD = 0.5  # If >50% pages are empty, likely scanned


@dataclass
class ExtractionMetrics:
    """Metrics from text extraction."""

    method: str
    total_pages: int
    empty_pages_count: int
    total_chars: int
    detected_language: str | None = None
    is_likely_scanned: bool = False

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "total_pages": self.total_pages,
            "empty_pages_count": self.empty_pages_count,
            "total_chars": self.total_chars,
            "detected_language": self.detected_language,
            "is_likely_scanned": self.is_likely_scanned,
        }


@dataclass
class ExtractedText:
    """Text pulled out of one uploaded file."""

    filename: str
    extension: str
    text: str
    metrics: ExtractionMetrics
    pages: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


class TextExtractionError(Exception):
    """Base exception for text extraction errors."""

    pass


class UnsupportedFileTypeError(TextExtractionError):
    """Raised when the file extension has no extractor."""

    def __init__(self, filename: str, extension: str):
        self.filename = filename
        self.extension = extension
        super().__init__(
            f"Unsupported file type for extraction: '.{extension}' ({filename}). "
            f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        )


class ProtectedPdfError(TextExtractionError):
    """Raised when PDF is password-protected."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"PDF is password-protected: {filename}")


def file_extension(filename: str) -> str:
    """Lower-case extension without the dot ('' when there is none)."""
    return PurePath(filename).suffix.lstrip(".").lower()


def is_supported(filename: str) -> bool:
    """Whether extract_text can handle this file name."""
    return file_extension(filename) in SUPPORTED_EXTENSIONS


def extract_text(data: bytes, filename: str, extension: str | None = None) -> ExtractedText:
    """Extract plain text from an uploaded file.

    Args:
        data: Raw file contents
        filename: Original file name (used for the extension and messages)
        extension: Explicit extension, overrides the one in filename

    Returns:
        ExtractedText with the text and extraction metrics

    Raises:
        UnsupportedFileTypeError: If the extension is not supported
        ProtectedPdfError: If a PDF is password-protected
        TextExtractionError: If the file cannot be read
    """
    ext = (extension or file_extension(filename)).lower().lstrip(".")

    if ext in PDF_EXTENSIONS:
        pages = _extract_pdf_pages(data, filename)
        method = "pdf"
    elif ext in DOCX_EXTENSIONS:
        pages = [_extract_docx(data, filename)]
        method = "docx"
    elif ext in IMAGE_EXTENSIONS:
        pages = [_extract_image(data, filename)]
        method = "ocr"
    elif ext in TEXT_EXTENSIONS:
        pages = [data.decode("utf-8", errors="replace")]
        method = "text"
    else:
        raise UnsupportedFileTypeError(filename, ext)

    text = "\n\n".join(p for p in pages if p.strip())
    empty_pages = sum(1 for p in pages if len(p.strip()) < MIN_CHARS_PER_PAGE)
    total_pages = len(pages)
    empty_ratio = empty_pages / total_pages if total_pages > 0 else 0
    is_scanned = method == "pdf" and empty_ratio > SCANNED_PDF_THRESHOLD

    metrics = ExtractionMetrics(
        method=method,
        total_pages=total_pages,
        empty_pages_count=empty_pages,
        total_chars=len(text.strip()),
        detected_language=_detect_language(text),
        is_likely_scanned=is_scanned,
    )

    logger.info(
        "text_extractor.done",
        filename=filename,
        method=method,
        pages=total_pages,
        chars=metrics.total_chars,
        language=metrics.detected_language,
    )

    if is_scanned:
        logger.warning(
            "text_extractor.likely_scanned",
            filename=filename,
            empty_ratio=round(empty_ratio, 2),
        )

    return ExtractedText(
        filename=filename,
        extension=ext,
        text=text,
        metrics=metrics,
        pages=pages,
    )


def _extract_pdf_pages(data: bytes, filename: str) -> list[str]:
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise TextExtractionError(f"Could not open PDF {filename}: {e}") from e

    try:
        if doc.is_encrypted:
            raise ProtectedPdfError(filename)
        return [doc[page_num].get_text("text") for page_num in range(len(doc))]
    finally:
        doc.close()


def _extract_docx(data: bytes, filename: str) -> str:
    try:
        document = docx.Document(io.BytesIO(data))
    except Exception as e:
        raise TextExtractionError(f"Could not open DOCX {filename}: {e}") from e

    parts = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(" | ".join(cells))
    return "\n".join(parts)


def _extract_image(data: bytes, filename: str) -> str:
    try:
        image = Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise TextExtractionError(f"Could not read image {filename}: {e}") from e

    # TesseractNotFoundError is an OSError, so it is matched first
    try:
        return pytesseract.image_to_string(image, lang=OCR_LANGUAGE)
    except pytesseract.TesseractNotFoundError as e:
        raise TextExtractionError("OCR unavailable: tesseract is not installed") from e
    except pytesseract.TesseractError as e:
        raise TextExtractionError(f"OCR failed for {filename}: {e}") from e
    except (Image.DecompressionBombError, OSError) as e:
        raise TextExtractionError(f"Could not read image {filename}: {e}") from e
    finally:
        image.close()


def _detect_language(text: str) -> str | None:
    sample = text.strip()[:5000]
    if not sample:
        return None
    try:
        return detect(sample)
    except LangDetectException:
        return None
