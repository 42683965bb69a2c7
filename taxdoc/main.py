"""Main entry point: public operations, batch processing and the CLI."""

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .classifier import classify
from .config_loader import ConfigError, PipelineConfig, load_config
from .data_extractor import TaxDataExtractor
from .document_parser import (
    SUPPORTED_EXTENSIONS, AcquisitionError, DocumentParser, SourceDocument,
    SpreadsheetParser, acquire_text,
)
from .federal_tax import TaxCalculationError, calculate_tax_return
from .income_mapping import map_extracted_data_to_income_entries
from .models import (
    STATUS_MAP, BatchResult, DocumentResult, ExtractedForm, ProcessingStatus,
)
from .report_generator import generate_full_report

logger = logging.getLogger(__name__)

__all__ = [
    "extract_data_from_tax_form",
    "map_extracted_data_to_income_entries",
    "calculate_tax_return",
    "process_tax_documents",
    "scan_local_folder",
    "main",
]

DocumentInput = Union[SourceDocument, str, Path, bytes]


def _as_document(document: DocumentInput, mime_type: Optional[str],
                 filename_hint: Optional[str]) -> SourceDocument:
    if isinstance(document, SourceDocument):
        if mime_type and mime_type != document.mime_type:
            return replace(document, mime_type=mime_type)
        return document
    if isinstance(document, (bytes, bytearray)):
        return SourceDocument(
            content=bytes(document),
            mime_type=mime_type or "application/pdf",
            filename=filename_hint,
        )
    try:
        return SourceDocument.from_path(str(document), mime_type=mime_type)
    except OSError as e:
        raise AcquisitionError(f"Could not read {document}: {e}") from e


def extract_data_from_tax_form(
    document: DocumentInput,
    mime_type: Optional[str] = None,
    capability=None,
    filename_hint: Optional[str] = None,
) -> ExtractedForm:
    """
    Acquire, classify and extract one tax document.

    Args:
        document: SourceDocument, file path, or raw bytes
        mime_type: Content type (overrides the guessed/declared one)
        capability: Acquisition capability; picked by content type when None
        filename_hint: Original filename, used for form classification

    Returns:
        ExtractedForm

    Raises:
        AcquisitionError: if text could not be obtained from the document
    """
    source = _as_document(document, mime_type, filename_hint)
    acquired = acquire_text(source, capability)
    form_type = classify(acquired.text, filename_hint or source.filename)
    form = TaxDataExtractor().extract(form_type, acquired.text, acquired.entities)
    logger.info("Extracted %s from %s (confidence %.2f)",
                form.form_type.value, source.filename or "document", form.confidence)
    return form


def _source_name(document: DocumentInput, index: int) -> str:
    if isinstance(document, SourceDocument):
        return document.filename or f"document {index + 1}"
    if isinstance(document, (bytes, bytearray)):
        return f"document {index + 1}"
    return str(document)


def process_tax_documents(
    documents: Sequence[DocumentInput],
    capability=None,
    max_workers: int = 4,
    timeout: Optional[float] = None,
    default_tax_year: Optional[int] = None,
) -> BatchResult:
    """
    Extract every document in parallel, then map them together.

    Mapping only starts once every extraction has finished or timed out.
    Documents that fail or time out are reported FAILED and left out of the
    mapping.

    Args:
        documents: Documents of one filing
        capability: Acquisition capability shared by all documents
        max_workers: Thread pool size
        timeout: Seconds to wait for each document's result
        default_tax_year: Year used when no form reports one

    Returns:
        BatchResult with per-document outcomes (input order) and the mapping
    """
    results: List[DocumentResult] = []
    executor = ThreadPoolExecutor(max_workers=max(1, max_workers))
    futures = [
        executor.submit(extract_data_from_tax_form, doc, None, capability)
        for doc in documents
    ]
    try:
        for index, (doc, future) in enumerate(zip(documents, futures)):
            name = _source_name(doc, index)
            try:
                form = future.result(timeout=timeout)
            except AcquisitionError as e:
                logger.error("Failed to process %s: %s", name, e)
                results.append(DocumentResult(name, ProcessingStatus.FAILED, error=str(e)))
                continue
            except FutureTimeoutError:
                future.cancel()
                logger.error("Timed out processing %s", name)
                results.append(DocumentResult(
                    name, ProcessingStatus.FAILED, error=f"Timed out after {timeout}s"
                ))
                continue
            results.append(DocumentResult(name, ProcessingStatus.COMPLETED, form=form))
    finally:
        # A hung acquisition keeps its worker thread; the batch does not wait for it
        executor.shutdown(wait=False, cancel_futures=True)

    mapping = map_extracted_data_to_income_entries(
        [r.form for r in results if r.form is not None],
        default_tax_year=default_tax_year,
    )
    return BatchResult(documents=results, mapping=mapping)


def scan_local_folder(folder_path: str) -> List[str]:
    """Recursively scan a local folder for tax documents."""
    files = []
    folder = Path(folder_path)

    if not folder.exists():
        print(f"Error: Folder not found: {folder_path}")
        return files

    print(f"\nScanning folder: {folder_path}")
    for file_path in sorted(folder.rglob('*')):
        if file_path.is_file() and file_path.suffix.lower() in SUPPORTED_EXTENSIONS:
            files.append(str(file_path))
            print(f"  Found: {file_path.relative_to(folder)}")

    print(f"\nTotal files found: {len(files)}")
    return files


def build_capability(config: Optional[PipelineConfig], use_document_ai: bool = False):
    """
    Acquisition capability for the CLI.

    Document AI is used only when requested and configured; otherwise None,
    which lets each document pick the local OCR or spreadsheet parser.
    """
    config = config or PipelineConfig()
    if use_document_ai:
        settings = config.document_ai
        if not settings.enabled:
            raise ConfigError("--document-ai needs document_ai.project_id and processor_id in the config")
        from .document_ai import DocumentAIClient
        return DocumentAIClient(
            project_id=settings.project_id,
            processor_id=settings.processor_id,
            location=settings.location,
            credentials_file=settings.credentials_file,
            max_attempts=settings.max_attempts,
            retry_delay=settings.retry_delay,
            timeout=settings.timeout,
        )
    if config.ocr.tesseract_path or config.ocr.dpi != 300 or config.ocr.language != "eng":
        return _LocalCapability(DocumentParser(
            tesseract_path=config.ocr.tesseract_path,
            dpi=config.ocr.dpi,
            language=config.ocr.language,
        ))
    return None


class _LocalCapability:
    """Configured OCR parser for PDFs/images, spreadsheet parser otherwise."""

    def __init__(self, ocr: DocumentParser):
        self.ocr = ocr
        self.spreadsheet = SpreadsheetParser()
        self.name = ocr.name

    def acquire(self, document: SourceDocument):
        if document.is_spreadsheet:
            return self.spreadsheet.acquire(document)
        return self.ocr.acquire(document)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Tax document extraction - W-2/1099 forms to a federal return summary"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file"
    )
    parser.add_argument(
        "--files", nargs="+",
        help="Local file paths to process (PDF, images, CSV, Excel)"
    )
    parser.add_argument(
        "--local-folder",
        help="Local folder path to scan recursively for tax documents"
    )
    parser.add_argument(
        "--filing-status",
        choices=sorted(STATUS_MAP),
        default=None,
        help="Tax filing status"
    )
    parser.add_argument(
        "--itemized-deduction",
        type=float, default=None,
        help="Itemized deduction total (the larger of this and the standard deduction applies)"
    )
    parser.add_argument(
        "--tax-year",
        type=int, default=None,
        help="Tax year whose brackets apply (default: config, then the documents)"
    )
    parser.add_argument(
        "--workers",
        type=int, default=None,
        help="Documents processed in parallel"
    )
    parser.add_argument(
        "--document-ai", action="store_true",
        help="Use Google Document AI (configured in the config file) instead of local OCR"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Debug logging"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config) if args.config else None
    except ConfigError as e:
        print(f"Error: {e}")
        return 2
    if config:
        print(f"\nLoaded config: {args.config}")
        print(f"  Filing status: {config.filing_status}")
        if config.tax_year:
            print(f"  Tax year: {config.tax_year}")
        if config.document_folder:
            print(f"  Document folder: {config.document_folder}")

    files = list(args.files or [])
    folder = args.local_folder or (config.document_folder if config else None)
    if folder:
        files.extend(scan_local_folder(folder))
    if not files:
        print("No documents to process. Use --files or --local-folder.")
        return 1

    if not args.document_ai:
        print("\n  All processing runs locally; no documents are sent anywhere.\n")

    try:
        capability = build_capability(config, use_document_ai=args.document_ai)
    except ConfigError as e:
        print(f"Error: {e}")
        return 2

    max_workers = args.workers or (config.max_workers if config else 4)
    batch = process_tax_documents(
        files,
        capability=capability,
        max_workers=max_workers,
        timeout=config.document_timeout if config else None,
    )

    # CLI overrides take precedence over config
    filing_status = args.filing_status or (config.filing_status if config else "single")
    itemized = args.itemized_deduction
    if itemized is None and config:
        itemized = config.itemized_deduction
    tax_year = args.tax_year or (config.tax_year if config else None) or batch.mapping.tax_year

    try:
        result = calculate_tax_return(
            batch.mapping.total_income,
            batch.mapping.withheld_tax,
            filing_status,
            itemized_deduction=itemized,
            tax_year=tax_year,
        )
    except TaxCalculationError as e:
        print(generate_full_report(batch))
        print(f"Error: {e}")
        return 1

    print(generate_full_report(batch, result))
    return 1 if batch.failed else 0


if __name__ == "__main__":
    sys.exit(main())
