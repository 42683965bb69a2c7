"""Document acquisition: turn uploaded bytes into text (and entities).

Two local capabilities live here:

  * ``DocumentParser`` - PDFs via pdfplumber (spatial text, OCR fallback)
    and images via Tesseract.
  * ``SpreadsheetParser`` - CSV/Excel key/value sheets via pandas.

The hosted Document AI capability lives in ``document_ai``.  All of them
expose ``acquire(document) -> AcquiredText``.
"""

import io
import logging
import mimetypes
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import pdfplumber

# Suppress noisy PDF font warnings (missing FontBBox in descriptor)
for _name in ("pdfminer", "pdfminer.six", "pdfplumber", "pypdf", "PyPDF2"):
    logging.getLogger(_name).setLevel(logging.ERROR)
import pytesseract
from PIL import Image
import pandas as pd

logger = logging.getLogger(__name__)

PDF_MIME_TYPES = {'application/pdf'}
IMAGE_MIME_TYPES = {
    'image/png', 'image/jpeg', 'image/jpg', 'image/tiff', 'image/bmp', 'image/gif',
}
SPREADSHEET_MIME_TYPES = {
    'text/csv',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}

# Extension fallbacks for platforms whose mimetypes table is incomplete
_EXTENSION_MIME_TYPES = {
    '.pdf': 'application/pdf',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.tif': 'image/tiff',
    '.tiff': 'image/tiff',
    '.bmp': 'image/bmp',
    '.csv': 'text/csv',
    '.xls': 'application/vnd.ms-excel',
    '.xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}

SUPPORTED_EXTENSIONS = set(_EXTENSION_MIME_TYPES)


class AcquisitionError(Exception):
    """Text could not be obtained from a document."""


@dataclass
class SourceDocument:
    """An uploaded document: raw bytes plus declared content type."""
    content: bytes
    mime_type: str
    filename: Optional[str] = None

    @classmethod
    def from_path(cls, file_path: str, mime_type: Optional[str] = None) -> "SourceDocument":
        """Read a document from disk, guessing the content type from its name."""
        path = Path(file_path)
        if mime_type is None:
            mime_type = guess_mime_type(path.name)
        return cls(content=path.read_bytes(), mime_type=mime_type, filename=path.name)

    @property
    def is_spreadsheet(self) -> bool:
        return self.mime_type in SPREADSHEET_MIME_TYPES


@dataclass
class Entity:
    """A structured field reported by the acquisition source."""
    type: str
    mention_text: str
    normalized_value: Optional[str] = None
    confidence: Optional[float] = None


@dataclass
class AcquiredText:
    """What an acquisition capability produced for one document."""
    text: str
    entities: List[Entity] = field(default_factory=list)
    source: str = ""


def guess_mime_type(filename: str) -> str:
    extension = Path(filename).suffix.lower()
    if extension in _EXTENSION_MIME_TYPES:
        return _EXTENSION_MIME_TYPES[extension]
    guessed, _ = mimetypes.guess_type(filename)
    if guessed is None:
        raise AcquisitionError(f"Unsupported file type: {extension or filename}")
    return guessed


class DocumentParser:
    """Local OCR capability for PDFs and images."""

    name = "tesseract"

    # Common Tesseract install locations on Windows
    _TESSERACT_PATHS = [
        r'C:\Program Files\Tesseract-OCR\tesseract.exe',
        r'C:\Program Files (x86)\Tesseract-OCR\tesseract.exe',
    ]

    def __init__(self, tesseract_path: Optional[str] = None, dpi: int = 300, language: str = "eng"):
        """
        Initialize the document parser.

        Args:
            tesseract_path: Path to Tesseract executable (if not in PATH)
            dpi: Resolution used when rendering PDF pages for OCR
            language: Tesseract language code
        """
        self.dpi = dpi
        self.language = language
        if tesseract_path:
            pytesseract.pytesseract.tesseract_cmd = tesseract_path
        else:
            # Auto-detect Tesseract on Windows if not in PATH
            for candidate in self._TESSERACT_PATHS:
                if os.path.isfile(candidate):
                    pytesseract.pytesseract.tesseract_cmd = candidate
                    break

    def acquire(self, document: SourceDocument) -> AcquiredText:
        """
        Extract the text content of a document.

        Args:
            document: Uploaded document bytes and content type

        Returns:
            AcquiredText with OCR-corrected text and no entities
        """
        if document.mime_type in PDF_MIME_TYPES:
            text = self._parse_pdf(document.content)
        elif document.mime_type in IMAGE_MIME_TYPES:
            text = self._parse_image(document.content)
        else:
            raise AcquisitionError(f"Unsupported content type for OCR: {document.mime_type}")
        return AcquiredText(text=OCREnhancer.correct_text(text), source=self.name)

    def _parse_pdf(self, content: bytes) -> str:
        """
        Text extraction priority:
          1. Spatial reconstruction - sorts all characters by (y, x) position,
             correctly separating columns that pdfplumber's default stream order
             interleaves.  Used when it produces clean, substantial text.
          2. High-resolution OCR - authoritative source for image-based PDFs
             and any PDF where spatial reconstruction is garbled or empty.
        """
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", message=".*[Ff]ont[Bb]ox.*")
            warnings.filterwarnings("ignore", message=".*font descriptor.*")
            with pdfplumber.open(io.BytesIO(content)) as pdf:
                num_pages = max(len(pdf.pages), 1)
                spatial = '\n\n'.join(
                    text for text in (self._page_text_spatial(page) for page in pdf.pages) if text
                )
                spatial_ok = (
                    bool(spatial.strip())
                    and not self._is_garbled(spatial)
                    and len(spatial.strip()) >= 200 * num_pages
                )
                if spatial_ok:
                    return spatial

                logger.debug("Spatial PDF text unusable, falling back to OCR")
                ocr_text = '\n\n'.join(
                    pytesseract.image_to_string(
                        page.to_image(resolution=self.dpi).original, lang=self.language
                    )
                    for page in pdf.pages
                )
        # Last resort: whatever spatial produced
        return ocr_text if ocr_text.strip() else spatial

    @staticmethod
    def _is_garbled(text: str) -> bool:
        """Return True if the text looks like garbled PDF column-extraction.

        PDFs with multi-column layouts sometimes yield a stream of single
        characters on separate lines instead of readable words.  If more than
        40% of non-empty lines are <= 2 chars, the text is considered garbled.
        """
        lines = [ln for ln in text.splitlines() if ln.strip()]
        if not lines:
            return False
        short = sum(1 for ln in lines if len(ln.strip()) <= 2)
        return (short / len(lines)) > 0.40

    @staticmethod
    def _page_text_spatial(page) -> str:
        """Rebuild one page's text by sorting characters by row, then column."""
        chars = page.chars
        if not chars:
            return ''
        # Round y to nearest 5pt to group chars on the same line
        rows: dict = {}
        for ch in chars:
            row_key = round(ch['top'] / 5) * 5
            rows.setdefault(row_key, []).append(ch)
        lines = []
        for y in sorted(rows):
            parts = []
            prev_x1 = None
            prev_size = None
            for ch in sorted(rows[y], key=lambda c: c['x0']):
                if prev_x1 is not None:
                    # A gap wider than 30% of the font size is a word boundary
                    avg_size = ((ch.get('size') or 10) + (prev_size or 10)) / 2
                    if ch['x0'] - prev_x1 > avg_size * 0.3:
                        parts.append(' ')
                parts.append(ch['text'])
                prev_x1 = ch['x1']
                prev_size = ch.get('size') or 10
            lines.append(''.join(parts))
        return '\n'.join(lines)

    def _parse_image(self, content: bytes) -> str:
        image = Image.open(io.BytesIO(content))
        if image.mode != 'RGB':
            image = image.convert('RGB')
        return pytesseract.image_to_string(image, lang=self.language)


class SpreadsheetParser:
    """Key/value CSV or Excel sheets (first column label, second column value)."""

    name = "spreadsheet"

    def acquire(self, document: SourceDocument) -> AcquiredText:
        if document.mime_type not in SPREADSHEET_MIME_TYPES:
            raise AcquisitionError(f"Not a spreadsheet: {document.mime_type}")

        buffer = io.BytesIO(document.content)
        # Read without header to handle key-value format sheets
        if document.mime_type == 'text/csv':
            df = pd.read_csv(buffer, header=None, dtype=str)
        else:
            df = pd.read_excel(buffer, header=None, dtype=str)

        entities = []
        if len(df.columns) == 2:
            for _, row in df.iterrows():
                key, value = row.iloc[0], row.iloc[1]
                if pd.isna(key) or pd.isna(value):
                    continue
                entities.append(Entity(
                    type=str(key).strip().lower(),
                    mention_text=str(value).strip(),
                    confidence=1.0,
                ))

        return AcquiredText(text=df.to_string(), entities=entities, source=self.name)


def default_capability(document: SourceDocument):
    """Pick the local capability suited to a document's content type."""
    if document.is_spreadsheet:
        return SpreadsheetParser()
    return DocumentParser()


def acquire_text(document: SourceDocument, capability=None) -> AcquiredText:
    """
    Run a capability and surface any failure as AcquisitionError.

    Args:
        document: Uploaded document
        capability: Object with ``acquire(document)``; picked by content type when None
    """
    capability = capability or default_capability(document)
    name = document.filename or document.mime_type
    try:
        acquired = capability.acquire(document)
    except AcquisitionError:
        raise
    except Exception as e:
        raise AcquisitionError(f"Could not read {name}: {e}") from e
    logger.info("Acquired %d chars, %d entities from %s via %s",
                len(acquired.text), len(acquired.entities), name,
                getattr(capability, 'name', type(capability).__name__))
    return acquired


class OCREnhancer:
    """Enhance OCR results for tax documents."""

    # Common OCR corrections for tax forms
    COMMON_CORRECTIONS = {
        'W-Z': 'W-2',
        'l099': '1099',
        '1O99': '1099',
        'lO99': '1099',
        'S0CIAL': 'SOCIAL',
        'SECUR1TY': 'SECURITY',
    }

    @classmethod
    def correct_text(cls, text: str) -> str:
        """
        Apply common corrections to OCR text.

        Args:
            text: Raw OCR text

        Returns:
            Corrected text
        """
        corrected = text
        for wrong, right in cls.COMMON_CORRECTIONS.items():
            corrected = corrected.replace(wrong, right)
        return corrected
