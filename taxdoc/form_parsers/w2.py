"""W-2 Wage and Tax Statement.

OCR of a W-2 routinely loses the box layout: labels and values land on
different lines, or the values are gone from their labels entirely.  Wages
and federal withholding therefore fall back to a statistical guess, while
the other boxes only accept labeled values.
"""

from decimal import Decimal

from ..models import FormType, Party
from ..strategies import (
    AmountField, between, labeled_value, mine_amounts, normalize_ein,
    recover_company_name, recover_identifier, recover_name,
    recover_name_from_lines,
)
from . import register
from .common import build_form

SECONDARY_WAGES = between(0, 1_000_000, include_low=False)
SECONDARY_TAX = between(0, 100_000, include_low=False)

FIELDS = [
    AmountField(
        name="wages",
        labels=(r"Wages,?\s*tips,?\s*other\s*comp(?:ensation)?", r"Box\s*1(?![\da-z])"),
        plausible=between(1_000, 1_000_000),
        fallback=between(1_000, 500_000),
    ),
    AmountField(
        name="federal_income_tax_withheld",
        labels=(r"Federal\s*income\s*tax\s*withheld", r"Box\s*2(?![\da-z])"),
        plausible=between(0, 100_000),
        fallback=between(100, 100_000),
        relative_to="wages",
        max_ratio=Decimal("0.5"),
    ),
    AmountField(
        name="social_security_wages",
        labels=(r"Social\s*security\s*wages", r"Box\s*3(?![\da-z])"),
        plausible=SECONDARY_WAGES,
    ),
    AmountField(
        name="social_security_tax_withheld",
        labels=(r"Social\s*security\s*tax\s*withheld", r"Box\s*4(?![\da-z])"),
        plausible=SECONDARY_TAX,
    ),
    AmountField(
        name="medicare_wages",
        labels=(r"Medicare\s*wages\s*and\s*tips", r"Box\s*5(?![\da-z])"),
        plausible=SECONDARY_WAGES,
    ),
    AmountField(
        name="medicare_tax_withheld",
        labels=(r"Medicare\s*tax\s*withheld", r"Box\s*6(?![\da-z])"),
        plausible=SECONDARY_TAX,
    ),
    AmountField(
        name="state_wages",
        labels=(r"State\s*wages,?\s*tips,?\s*etc\.?", r"Box\s*16(?![\da-z])"),
        plausible=SECONDARY_WAGES,
    ),
    AmountField(
        name="state_tax_withheld",
        labels=(r"State\s*income\s*tax", r"Box\s*17(?![\da-z])"),
        plausible=SECONDARY_TAX,
    ),
]

EMPLOYER_EIN_PATTERNS = [
    r"(?:employer.?s?\s*FED\s*ID|employer\s+identification\s+number|\bEIN\b)[^\d\n]*(\d{2}-?\d{7})",
]
EMPLOYEE_SSN_PATTERNS = [
    r"(?:employee.?s\s+social\s+security\s+number|\bSSN\b)[^\d\n]*(\d{3}-\d{2}-\d{4})",
]


@register(FormType.W2, FIELDS)
def parse(text: str):
    """Mine a W-2 from OCR text."""
    amounts = mine_amounts(text, FIELDS)

    employee_name = (
        recover_name(text, r"Employee.?s\s+first\s+name")
        or recover_name_from_lines(text)
    )
    employee_ssn = (
        labeled_value(text, EMPLOYEE_SSN_PATTERNS)
        or recover_identifier(text, 'ssn')
    )
    employer_name = recover_company_name(text, r"Employer.?s\s+name")
    employer_ein = (
        normalize_ein(labeled_value(text, EMPLOYER_EIN_PATTERNS))
        or recover_identifier(text, 'ein')
    )

    return build_form(
        FormType.W2,
        text,
        amounts,
        payer=Party(employer_name, employer_ein),
        recipient=Party(employee_name, employee_ssn),
    )
