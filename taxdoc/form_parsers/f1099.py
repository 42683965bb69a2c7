"""1099 information returns: NEC, INT, DIV, MISC, R and G."""

from ..models import FormType
from ..strategies import AmountField
from . import register
from .common import FORM_1099_AMOUNT, federal_withheld_field, parse_1099


def _amount(name: str, *labels: str) -> AmountField:
    return AmountField(name=name, labels=labels, plausible=FORM_1099_AMOUNT)


NEC_FIELDS = [
    _amount(
        "nonemployee_compensation",
        r"Nonemployee\s+compensation",
    ),
    federal_withheld_field(),
]

INT_FIELDS = [
    _amount(
        "interest_income",
        r"Interest\s+income",
        r"Box\s*1(?![\da-z])",
    ),
    federal_withheld_field(),
]

DIV_FIELDS = [
    _amount(
        "ordinary_dividends",
        r"(?:Total\s+)?ordinary\s+dividends",
        r"Box\s*1a\b",
    ),
    _amount(
        "qualified_dividends",
        r"Qualified\s+dividends",
        r"Box\s*1b\b",
    ),
    federal_withheld_field(),
]

MISC_FIELDS = [
    _amount(
        "rents",
        r"\bRents\b",
    ),
    _amount(
        "miscellaneous_income",
        r"Miscellaneous\s+income",
        r"Other\s+income",
        r"Box\s*3(?![\da-z])",
    ),
    federal_withheld_field(),
]

R_FIELDS = [
    _amount(
        "gross_distribution",
        r"Gross\s*distribution",
    ),
    _amount(
        "taxable_amount",
        r"Taxable\s*amount(?!\s+not)",
        r"Box\s*2a\b",
    ),
    federal_withheld_field(),
]

G_FIELDS = [
    _amount(
        "unemployment_compensation",
        r"Unemployment\s+compensation",
    ),
    _amount(
        "state_tax_refund",
        r"State\s+or\s+local\s+income\s+tax\s+refunds(?:,\s*credits,\s*or\s*offsets)?",
    ),
    federal_withheld_field(),
]


@register(FormType.FORM_1099_NEC, NEC_FIELDS)
def parse_nec(text: str):
    return parse_1099(FormType.FORM_1099_NEC, text, NEC_FIELDS)


@register(FormType.FORM_1099_INT, INT_FIELDS)
def parse_int(text: str):
    return parse_1099(FormType.FORM_1099_INT, text, INT_FIELDS)


@register(FormType.FORM_1099_DIV, DIV_FIELDS)
def parse_div(text: str):
    return parse_1099(FormType.FORM_1099_DIV, text, DIV_FIELDS)


@register(FormType.FORM_1099_MISC, MISC_FIELDS)
def parse_misc(text: str):
    return parse_1099(FormType.FORM_1099_MISC, text, MISC_FIELDS)


@register(FormType.FORM_1099_R, R_FIELDS)
def parse_r(text: str):
    return parse_1099(FormType.FORM_1099_R, text, R_FIELDS)


@register(FormType.FORM_1099_G, G_FIELDS)
def parse_g(text: str):
    return parse_1099(FormType.FORM_1099_G, text, G_FIELDS)
