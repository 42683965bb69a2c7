"""Identify the form type of a document from its filename and text."""

import logging
import re
from typing import List, Optional, Tuple

from .document_parser import OCREnhancer
from .models import FormType

logger = logging.getLogger(__name__)

# Filenames are checked first; users usually name files after the form.
FILENAME_HINTS: List[Tuple[FormType, str]] = [
    (FormType.FORM_1099_NEC, r"1099[-_ ]?nec"),
    (FormType.FORM_1099_INT, r"1099[-_ ]?int"),
    (FormType.FORM_1099_DIV, r"1099[-_ ]?div"),
    (FormType.FORM_1099_MISC, r"1099[-_ ]?misc"),
    (FormType.FORM_1099_R, r"1099[-_ ]?r(?![a-z])"),
    (FormType.FORM_1099_G, r"1099[-_ ]?g(?![a-z])"),
    (FormType.W2, r"(?<![a-z])w[-_ ]?2(?!\d)"),
]

# Content keywords, checked in this order; the first form with a hit wins.
CONTENT_KEYWORDS: List[Tuple[FormType, List[str]]] = [
    (FormType.FORM_1099_NEC, [r"1099-NEC", r"Nonemployee\s+compensation"]),
    (FormType.FORM_1099_INT, [r"1099-INT", r"Interest\s+income"]),
    (FormType.FORM_1099_DIV, [r"1099-DIV", r"Ordinary\s+dividends"]),
    (FormType.FORM_1099_MISC, [r"1099-MISC", r"Miscellaneous\s+(?:income|information)"]),
    (FormType.FORM_1099_R, [r"1099-R\b", r"Gross\s+distribution",
                            r"Distributions\s+From\s+Pensions"]),
    (FormType.FORM_1099_G, [r"1099-G\b", r"Unemployment\s+compensation",
                            r"Certain\s+Government\s+Payments"]),
    (FormType.W2, [r"\bW-2\b", r"Wage\s+and\s+Tax\s+Statement",
                   r"Wages,?\s*tips,?\s*other\s+compensation"]),
]


def classify_filename(filename: Optional[str]) -> Optional[FormType]:
    """Form type implied by a filename, if any."""
    if not filename:
        return None
    name = filename.lower()
    for form_type, pattern in FILENAME_HINTS:
        if re.search(pattern, name):
            return form_type
    return None


def classify(text: str, filename_hint: Optional[str] = None) -> FormType:
    """
    Identify the type of tax form.

    Args:
        text: Document text content
        filename_hint: Original filename, checked before the text

    Returns:
        Detected FormType, UNKNOWN when nothing matches
    """
    from_name = classify_filename(filename_hint)
    if from_name is not None:
        logger.debug("Classified %s as %s from filename", filename_hint, from_name.value)
        return from_name

    corrected = OCREnhancer.correct_text(text)
    for form_type, patterns in CONTENT_KEYWORDS:
        if any(re.search(p, corrected, re.IGNORECASE) for p in patterns):
            return form_type

    logger.info("Could not identify form type%s",
                f" for {filename_hint}" if filename_hint else "")
    return FormType.UNKNOWN
