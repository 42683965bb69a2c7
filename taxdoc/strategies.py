"""Field recovery strategies for noisy OCR text.

Amount fields are resolved by an ordered chain of strategies; the first one
that yields a plausible value wins and later strategies are not tried:

  1. Contextual regex - a value right after the field label on the same line.
  2. Positional scan - a purely numeric line within three lines of the label.
  3. Statistical fallback - the largest plausible number in the document,
     optionally bounded by an already-resolved related field.

Names and identifiers have their own recovery helpers.  Plausibility checks
are what keep control numbers, identifiers, ZIP codes and years from being
read as income, so every candidate passes through them.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Separator allowed between a label and its value: spaces, leader dots,
# colons, asterisks and a currency sign.  Never a newline.
_CONTEXT_VALUE = r"[ \t:.*]*(\$?)[ \t]*(\d[\d,]*(?:\.\d+)?)(?![\d-])"

_NUMERIC_LINE = re.compile(r"\$?\s*\d[\d,]*(?:\.\d+)?")
_NUMERIC_TOKEN = re.compile(r"\d[\d,]*(?:\.\d+)?")
_YEAR_TOKEN = re.compile(r"(?:19|20)\d{2}")

# Identifier-shaped strings that must never be mined for amounts:
# SSN (possibly masked), EIN, OMB numbers, and state + ZIP code.
_IDENTIFIER_SHAPES = re.compile(
    r"\b[\dX*]{3}-[\dX*]{2}-\d{4}\b"
    r"|\b\d{2}-\d{7}\b"
    r"|\b\d{4}-\d{4}\b"
    r"|\b[A-Z]{2}\s+\d{5}(?:-\d{4})?\b"
)

EIN_PATTERN = re.compile(r"\b(\d{2}-\d{7})\b")
SSN_PATTERN = re.compile(r"\b(\d{3}-\d{2}-\d{4})\b")

_TAX_YEAR = re.compile(r"\b(20\d{2})\b(?![.,]\d)")

# Words that appear as field labels on W-2/1099 forms and must not be
# mistaken for a person's name.
NAME_STOPLIST = frozenset({
    'Employee', 'Employer', 'First', 'Last', 'Name', 'Social', 'Security',
    'Number', 'Federal', 'Income', 'Tax', 'Control', 'Wages', 'Tips',
    'Other', 'Compensation', 'Medicare', 'Nonqualified', 'Plans',
    'Statutory', 'Retirement', 'Third', 'Party', 'Sick', 'Pay', 'State',
    'Local', 'Dependent', 'Benefits', 'Copy', 'Form', 'Department',
    'Treasury', 'Internal', 'Revenue', 'Service', 'Wage', 'Statement',
    'Payer', 'Recipient', 'Street', 'Address', 'City', 'Town', 'Code',
    'Void', 'Corrected', 'Account',
})

_NAME_PAIR = re.compile(r"\b([A-Z][a-z]{2,15})\s+([A-Z][a-z]{2,15})\b")
_SINGLE_NAME_LINE = re.compile(r"[A-Z][a-z]{2,15}")

BUSINESS_SUFFIXES = (
    'and Sons', 'Company', 'Corporation', 'Corp', 'LLC', 'Inc', 'Group',
    'Associates', 'Partners', 'Enterprises', 'Solutions', 'Services',
    'Industries', 'Holdings', 'Consulting', 'Bank', 'Credit Union',
)
_COMPANY = re.compile(
    r"\b([A-Z][A-Za-z0-9 ,.'&-]{1,60}?\s+(?:"
    + "|".join(re.escape(s).replace(r"\ ", r"\s+") for s in BUSINESS_SUFFIXES)
    + r"))\b\.?"
)
_FORM_VOCABULARY = re.compile(
    r"Employee|Employer|Federal|Social|Security|Medicare|Control|Wages|Income"
    r"|State|Local|Dependent|Benefits|Other|Compensation|Nonqualified|Plans"
    r"|Statutory|Retirement|Third|Party|Sick|Pay\b|Payer|Recipient",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class PlausibleRange:
    """Closed (or half-open at the bottom) range of acceptable amounts."""
    low: Decimal
    high: Decimal
    include_low: bool = True

    def contains(self, amount: Decimal) -> bool:
        if amount > self.high:
            return False
        if self.include_low:
            return amount >= self.low
        return amount > self.low


def between(low, high, include_low: bool = True) -> PlausibleRange:
    """Build a PlausibleRange from plain numbers."""
    return PlausibleRange(Decimal(str(low)), Decimal(str(high)), include_low)


@dataclass(frozen=True)
class AmountField:
    """How to find and validate one monetary field on a form."""
    name: str
    labels: Tuple[str, ...]
    plausible: PlausibleRange
    fallback: Optional[PlausibleRange] = None  # enables the statistical strategy
    relative_to: Optional[str] = None
    max_ratio: Optional[Decimal] = None

    def accept(self, token: str) -> Optional[Decimal]:
        """Return the parsed amount if a label-anchored ``token`` is plausible."""
        if looks_like_year(token):
            logger.debug("%s: rejected year-like token %r", self.name, token)
            return None
        amount = parse_amount(token)
        if amount is None or not self.plausible.contains(amount):
            logger.debug("%s: rejected implausible value %r", self.name, token)
            return None
        return amount


def parse_amount(value: Optional[str]) -> Optional[Decimal]:
    """
    Parse a monetary amount string to Decimal.

    Thousands separators and dollar signs are removed.  Anything that does
    not parse to a finite, non-negative number is treated as "not found".
    """
    if not value:
        return None
    clean = value.replace(',', '').replace('$', '').strip()
    try:
        amount = Decimal(clean)
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def looks_like_identifier(token: str) -> bool:
    """Seven or more digits with no decimal point reads as an ID, not money."""
    digits = sum(1 for ch in token if ch.isdigit())
    return '.' not in token and digits >= 7


def looks_like_year(token: str) -> bool:
    """A bare 19NN/20NN token; currency-marked values are never years."""
    return bool(_YEAR_TOKEN.fullmatch(token.strip()))


def is_incidental_number(token: str) -> bool:
    return looks_like_identifier(token) or looks_like_year(token)


def first_present(candidates: Iterable[Optional[T]]) -> Optional[T]:
    """Return the first candidate that is not None (evaluated lazily)."""
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


# ---------------------------------------------------------------------------
# Amount strategies
# ---------------------------------------------------------------------------

def contextual_candidates(text: str, labels: Sequence[str]) -> Iterator[str]:
    """Yield values that immediately follow a label on the same line."""
    for label in labels:
        for match in re.finditer(label + _CONTEXT_VALUE, text, re.IGNORECASE):
            currency, value = match.groups()[-2:]
            yield currency + value


def positional_candidates(text: str, labels: Sequence[str], window: int = 3) -> Iterator[str]:
    """Yield purely numeric lines found within ``window`` lines after a label."""
    lines = text.splitlines()
    for label in labels:
        pattern = re.compile(label, re.IGNORECASE)
        label_index = next(
            (i for i, line in enumerate(lines) if pattern.search(line)), None
        )
        if label_index is None:
            continue
        for line in lines[label_index + 1:label_index + 1 + window]:
            stripped = line.strip()
            if _NUMERIC_LINE.fullmatch(stripped):
                yield re.sub(r"\s+", "", stripped)


def numeric_tokens(text: str) -> List[str]:
    """All numeric tokens in the text, with identifier-shaped strings masked."""
    masked = _IDENTIFIER_SHAPES.sub(' ', text)
    return [token.rstrip(',') for token in _NUMERIC_TOKEN.findall(masked)]


def from_context(text: str, spec: AmountField, resolved: Dict[str, Decimal]) -> Optional[Decimal]:
    return first_present(spec.accept(t) for t in contextual_candidates(text, spec.labels))


def from_position(text: str, spec: AmountField, resolved: Dict[str, Decimal]) -> Optional[Decimal]:
    return first_present(spec.accept(t) for t in positional_candidates(text, spec.labels))


def from_statistics(text: str, spec: AmountField, resolved: Dict[str, Decimal]) -> Optional[Decimal]:
    """
    Pick the largest plausible number in the document.

    Only fields that declare a ``fallback`` range take part.  When the field
    is bounded by a related field (e.g. withheld tax by wages), the related
    field must already be resolved and candidates must be strictly below it
    and at most ``max_ratio`` of it.
    """
    if spec.fallback is None:
        return None

    reference = None
    if spec.relative_to:
        reference = resolved.get(spec.relative_to)
        if reference is None:
            return None

    candidates = []
    for token in numeric_tokens(text):
        if is_incidental_number(token):
            continue
        amount = parse_amount(token)
        if amount is None or not spec.fallback.contains(amount):
            continue
        if reference is not None:
            if amount >= reference:
                continue
            if spec.max_ratio is not None and amount > reference * spec.max_ratio:
                continue
        candidates.append(amount)

    if not candidates:
        return None
    value = max(candidates)
    logger.debug("%s: statistical fallback chose %s", spec.name, value)
    return value


StrategyFn = Callable[[str, AmountField, Dict[str, Decimal]], Optional[Decimal]]

AMOUNT_STRATEGIES: Tuple[StrategyFn, ...] = (from_context, from_position, from_statistics)


def mine_amounts(
    text: str,
    specs: Sequence[AmountField],
    strategies: Sequence[StrategyFn] = AMOUNT_STRATEGIES,
) -> Dict[str, Decimal]:
    """
    Resolve every field in ``specs`` from ``text``.

    Fields are resolved in order so that later fields can be bounded by
    earlier ones.  Fields with no plausible value are simply absent.
    """
    resolved: Dict[str, Decimal] = {}
    for spec in specs:
        value = first_present(strategy(text, spec, resolved) for strategy in strategies)
        if value is not None:
            resolved[spec.name] = value
    return resolved


# ---------------------------------------------------------------------------
# Names, identifiers, labeled text
# ---------------------------------------------------------------------------

def labeled_value(text: str, patterns: Sequence[str]) -> Optional[str]:
    """Return group 1 of the first pattern that matches."""
    for pattern in patterns:
        match = re.search(pattern, text, re.IGNORECASE | re.MULTILINE)
        if match and match.group(1).strip():
            return match.group(1).strip()
    return None


def recover_name(
    text: str,
    section_label: str,
    window: int = 300,
    stoplist: frozenset = NAME_STOPLIST,
) -> Optional[str]:
    """Find two consecutive capitalized words shortly after a section label."""
    match = re.search(section_label, text, re.IGNORECASE)
    if not match:
        return None
    section = text[match.start():match.start() + window]
    for pair in _NAME_PAIR.finditer(section):
        first, last = pair.group(1), pair.group(2)
        if first not in stoplist and last not in stoplist:
            return f"{first} {last}"
    return None


def recover_name_from_lines(text: str, stoplist: frozenset = NAME_STOPLIST) -> Optional[str]:
    """Find two consecutive lines that each hold a single capitalized word."""
    lines = [line.strip() for line in text.splitlines()]
    for first, last in zip(lines, lines[1:]):
        if (
            _SINGLE_NAME_LINE.fullmatch(first)
            and _SINGLE_NAME_LINE.fullmatch(last)
            and first not in stoplist
            and last not in stoplist
        ):
            return f"{first} {last}"
    return None


def recover_company_name(text: str, section_label: Optional[str] = None, window: int = 400) -> Optional[str]:
    """Find a business name (ending in Inc, LLC, Corp, ...) near a label, then anywhere."""
    regions = []
    if section_label:
        match = re.search(section_label, text, re.IGNORECASE)
        if match:
            regions.append(text[match.end():match.end() + window])
    regions.append(text)

    for region in regions:
        for line in region.splitlines():
            company = _COMPANY.search(line)
            if company and not _FORM_VOCABULARY.search(company.group(1)):
                return company.group(1).strip(" ,")
    return None


def recover_identifier(text: str, kind: str) -> Optional[str]:
    """Find an EIN ('ein') or SSN ('ssn') by its fixed format."""
    pattern = {'ein': EIN_PATTERN, 'ssn': SSN_PATTERN}[kind]
    match = pattern.search(text)
    return match.group(1) if match else None


def normalize_ein(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    digits = re.sub(r"\D", "", value)
    if len(digits) != 9:
        return None
    return f"{digits[:2]}-{digits[2:]}"


def extract_tax_year(text: str, today: Optional[date] = None) -> Optional[int]:
    """First standalone 20NN that is a realistic filing year."""
    latest = (today or date.today()).year + 1
    for match in _TAX_YEAR.finditer(text):
        year = int(match.group(1))
        if 2000 <= year <= latest:
            return year
    return None
