"""Helpers shared by the per-form text-mining parsers."""

import re
from decimal import Decimal
from typing import Dict, Optional, Sequence, Tuple

from ..models import ExtractedForm, FormType, Party, build_form_data
from ..strategies import (
    AmountField, between, extract_tax_year, labeled_value, mine_amounts,
    normalize_ein, recover_identifier, recover_name,
)

# Text mining has no per-field confidence, so a found document gets a
# fixed score and an empty one gets zero.
TEXT_MINING_CONFIDENCE = 0.6

FORM_1099_AMOUNT = between(0, 10_000_000, include_low=False)
FORM_1099_WITHHELD = between(0, 1_000_000)

PAYER_NAME_PATTERNS = [
    r"PAYER.?S\s+name,\s*street[^\n]*\n\s*([A-Z][^\n]+)",
    r"PAYER.?S\s+name[:,\s]+([^\n]+?)\s*(?:\n|\bTIN\b|$)",
]
PAYER_TIN_PATTERNS = [
    r"PAYER.?S\s+(?:TIN|federal\s+identification\s+number)[:\s]*(\d{2}-?\d{7})",
]
RECIPIENT_NAME_PATTERNS = [
    r"RECIPIENT.?S\s+name[:,\s]+([^\n]+?)\s*(?:\n|\bTIN\b|\bSSN\b|$)",
]
RECIPIENT_TIN_PATTERNS = [
    r"RECIPIENT.?S\s+(?:TIN|identification\s+number)[:\s]*([\dX*]{3}-[\dX*]{2}-\d{4}|\d{2}-\d{7})",
]

_ADDRESS_WORDS = re.compile(r"street|address|city|ZIP|telephone|province", re.IGNORECASE)


def federal_withheld_field(labels: Sequence[str] = ()) -> AmountField:
    """Box 4 on every 1099 variant."""
    return AmountField(
        name="federal_income_tax_withheld",
        labels=tuple(labels) + (r"Federal\s+income\s+tax\s+withheld",),
        plausible=FORM_1099_WITHHELD,
    )


def clean_party_name(name: Optional[str]) -> Optional[str]:
    """Drop captures that are really the next label rather than a name."""
    if not name:
        return None
    name = name.strip(" ,:")
    if not name or _ADDRESS_WORDS.search(name):
        return None
    return name


def extract_payer_recipient(text: str) -> Tuple[Party, Party]:
    """Payer and recipient identity from a 1099-style layout."""
    payer_name = clean_party_name(labeled_value(text, PAYER_NAME_PATTERNS))
    payer_tin = normalize_ein(labeled_value(text, PAYER_TIN_PATTERNS))
    if not payer_tin:
        payer_tin = recover_identifier(text, 'ein')

    recipient_name = clean_party_name(labeled_value(text, RECIPIENT_NAME_PATTERNS))
    if not recipient_name:
        recipient_name = recover_name(text, r"RECIPIENT.?S\s+name")
    recipient_tin = labeled_value(text, RECIPIENT_TIN_PATTERNS)
    if not recipient_tin:
        recipient_tin = recover_identifier(text, 'ssn')

    return Party(payer_name, payer_tin), Party(recipient_name, recipient_tin)


def build_form(
    form_type: FormType,
    text: str,
    amounts: Dict[str, Decimal],
    payer: Party,
    recipient: Party,
) -> ExtractedForm:
    """Assemble an ExtractedForm from text-mined pieces."""
    data, leftover = build_form_data(form_type, amounts)
    found = bool(amounts) or not payer.is_empty() or not recipient.is_empty()
    return ExtractedForm(
        form_type=form_type,
        data=data,
        tax_year=extract_tax_year(text),
        payer=None if payer.is_empty() else payer,
        recipient=None if recipient.is_empty() else recipient,
        extras={k: str(v) for k, v in leftover.items()},
        raw_text=text,
        confidence=TEXT_MINING_CONFIDENCE if found else 0.0,
    )


def parse_1099(form_type: FormType, text: str, fields: Sequence[AmountField]) -> ExtractedForm:
    """Mine amounts and parties from any 1099 variant."""
    amounts = mine_amounts(text, fields)
    payer, recipient = extract_payer_recipient(text)
    return build_form(form_type, text, amounts, payer, recipient)
