"""Load pipeline settings from a YAML configuration file."""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

import yaml

from .models import FilingStatus, parse_filing_status

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """A configuration value is malformed."""


@dataclass
class OcrConfig:
    """Local Tesseract settings."""
    tesseract_path: Optional[str] = None
    dpi: int = 300
    language: str = "eng"


@dataclass
class DocumentAIConfig:
    """Google Document AI processor settings."""
    project_id: str = ""
    processor_id: str = ""
    location: str = "us"
    credentials_file: Optional[str] = None
    max_attempts: int = 3
    retry_delay: float = 5.0
    timeout: float = 60.0

    @property
    def enabled(self) -> bool:
        return bool(self.project_id and self.processor_id)


@dataclass
class PipelineConfig:
    """Pipeline settings loaded from YAML."""
    tax_year: Optional[int] = None
    filing_status: str = "single"
    itemized_deduction: Optional[float] = None
    max_workers: int = 4
    document_timeout: Optional[float] = None  # Seconds to wait per document
    document_folder: Optional[str] = None
    ocr: OcrConfig = field(default_factory=OcrConfig)
    document_ai: DocumentAIConfig = field(default_factory=DocumentAIConfig)

    @property
    def status(self) -> FilingStatus:
        return parse_filing_status(self.filing_status)


def _number(raw: dict, key: str, cast, default, minimum=None):
    value = raw.get(key, default)
    if value is None:
        return None
    try:
        value = cast(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got {raw.get(key)!r}")
    if minimum is not None and value < minimum:
        raise ConfigError(f"{key} must be at least {minimum}, got {value}")
    return value


def _section(raw: dict, key: str) -> dict:
    section = raw.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"{key} must be a mapping")
    return section


def config_from_dict(raw: dict) -> PipelineConfig:
    """
    Build a PipelineConfig from parsed YAML.

    Raises:
        ConfigError: if a value has the wrong type or is out of range
    """
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")

    filing_status = str(raw.get("filing_status", "single"))
    try:
        parse_filing_status(filing_status)
    except ValueError as e:
        raise ConfigError(str(e)) from e

    ocr_raw = _section(raw, "ocr")
    ocr = OcrConfig(
        tesseract_path=ocr_raw.get("tesseract_path"),
        dpi=_number(ocr_raw, "dpi", int, 300, minimum=72),
        language=str(ocr_raw.get("language", "eng")),
    )

    ai_raw = _section(raw, "document_ai")
    document_ai = DocumentAIConfig(
        project_id=str(ai_raw.get("project_id", "") or ""),
        processor_id=str(ai_raw.get("processor_id", "") or ""),
        location=str(ai_raw.get("location", "us") or "us"),
        credentials_file=ai_raw.get("credentials_file"),
        max_attempts=_number(ai_raw, "max_attempts", int, 3, minimum=1),
        retry_delay=_number(ai_raw, "retry_delay", float, 5.0, minimum=0),
        timeout=_number(ai_raw, "timeout", float, 60.0, minimum=1),
    )

    config = PipelineConfig(
        tax_year=_number(raw, "tax_year", int, None, minimum=2000),
        filing_status=filing_status,
        itemized_deduction=_number(raw, "itemized_deduction", float, None, minimum=0),
        max_workers=_number(raw, "max_workers", int, 4, minimum=1),
        document_timeout=_number(raw, "document_timeout", float, None, minimum=1),
        document_folder=raw.get("document_folder"),
        ocr=ocr,
        document_ai=document_ai,
    )

    if document_ai.credentials_file and not os.path.isfile(document_ai.credentials_file):
        logger.warning("Document AI credentials file not found: %s",
                       document_ai.credentials_file)
    return config


def load_config(path: str) -> Optional[PipelineConfig]:
    """
    Load pipeline settings from a YAML file.

    Args:
        path: Path to the YAML config file.

    Returns:
        PipelineConfig if the file exists, None otherwise.

    Raises:
        ConfigError: if the file is not valid YAML or holds invalid values
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError:
        logger.warning("Config file not found: %s", path)
        return None
    except yaml.YAMLError as e:
        raise ConfigError(f"Error reading config file {path}: {e}") from e

    if not raw:
        return PipelineConfig()
    return config_from_dict(raw)
