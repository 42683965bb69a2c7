"""Map extracted forms to income line items and total withholding."""

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Type

from .models import (
    ExtractedForm, FormData, FormType, Form1099Div, Form1099G, Form1099Int,
    Form1099Misc, Form1099Nec, Form1099R, IncomeLineItem, IncomeType,
    TaxFormMapping, UnmappedAmounts, W2Data,
)

logger = logging.getLogger(__name__)

RuleFn = Callable[[ExtractedForm], List[IncomeLineItem]]

_FORM_LABELS = {
    FormType.UNKNOWN: "Unknown Form",
    FormType.OTHER: "Other Form",
}


def _line(form: ExtractedForm, income_type: IncomeType, label: str,
          amount: Optional[Decimal]) -> List[IncomeLineItem]:
    """A one-item list for a positive amount, otherwise empty."""
    if amount is None or amount <= 0:
        return []
    description = f"{_FORM_LABELS.get(form.form_type, form.form_type.value)}: {label}"
    if form.payer_name:
        description += f" from {form.payer_name}"
    return [IncomeLineItem(
        income_type=income_type,
        description=description,
        amount=amount,
        payer_name=form.payer_name,
        payer_tax_id=form.payer_tax_id,
    )]


def _w2_items(form: ExtractedForm) -> List[IncomeLineItem]:
    data: W2Data = form.data
    return _line(form, IncomeType.WAGES, "Wages", data.wages)


def _nec_items(form: ExtractedForm) -> List[IncomeLineItem]:
    data: Form1099Nec = form.data
    return _line(form, IncomeType.BUSINESS_INCOME, "Nonemployee compensation",
                 data.nonemployee_compensation)


def _int_items(form: ExtractedForm) -> List[IncomeLineItem]:
    data: Form1099Int = form.data
    return _line(form, IncomeType.INTEREST, "Interest income", data.interest_income)


def _div_items(form: ExtractedForm) -> List[IncomeLineItem]:
    data: Form1099Div = form.data
    return (
        _line(form, IncomeType.DIVIDENDS, "Ordinary dividends", data.ordinary_dividends)
        + _line(form, IncomeType.DIVIDENDS, "Qualified dividends", data.qualified_dividends)
    )


def _misc_items(form: ExtractedForm) -> List[IncomeLineItem]:
    data: Form1099Misc = form.data
    return (
        _line(form, IncomeType.OTHER_INCOME, "Rents", data.rents)
        + _line(form, IncomeType.OTHER_INCOME, "Other income", data.miscellaneous_income)
    )


def _r_items(form: ExtractedForm) -> List[IncomeLineItem]:
    data: Form1099R = form.data
    if data.taxable_amount is not None and data.taxable_amount > 0:
        return _line(form, IncomeType.RETIREMENT_DISTRIBUTIONS, "Taxable amount",
                     data.taxable_amount)
    return _line(form, IncomeType.RETIREMENT_DISTRIBUTIONS, "Gross distribution",
                 data.gross_distribution)


def _g_items(form: ExtractedForm) -> List[IncomeLineItem]:
    data: Form1099G = form.data
    return (
        _line(form, IncomeType.OTHER_INCOME, "Unemployment compensation",
              data.unemployment_compensation)
        + _line(form, IncomeType.OTHER_INCOME, "State or local income tax refund",
                data.state_tax_refund)
    )


def _unmapped_items(form: ExtractedForm) -> List[IncomeLineItem]:
    items = []
    for name, amount in form.amounts.items():
        if name == "federal_income_tax_withheld":
            continue
        items.extend(_line(form, IncomeType.OTHER_INCOME, name, amount))
    return items


# Dispatch on the typed variant so a form's rule always matches its data
MAPPING_RULES: Dict[Type[FormData], RuleFn] = {
    W2Data: _w2_items,
    Form1099Nec: _nec_items,
    Form1099Int: _int_items,
    Form1099Div: _div_items,
    Form1099Misc: _misc_items,
    Form1099R: _r_items,
    Form1099G: _g_items,
    UnmappedAmounts: _unmapped_items,
}


def map_extracted_data_to_income_entries(
    forms: Iterable[ExtractedForm],
    default_tax_year: Optional[int] = None,
) -> TaxFormMapping:
    """
    Turn extracted forms into income line items.

    Args:
        forms: Extracted forms for one filing
        default_tax_year: Year used when no form reports one
            (defaults to the previous calendar year)

    Returns:
        TaxFormMapping with line items in form order, total withholding,
        and the tax year (last form with a year wins)
    """
    line_items: List[IncomeLineItem] = []
    withheld = Decimal("0")
    years_seen: List[int] = []

    for form in forms:
        rule = MAPPING_RULES.get(type(form.data), _unmapped_items)
        line_items.extend(rule(form))
        if form.federal_income_tax_withheld:
            withheld += form.federal_income_tax_withheld
        if form.tax_year:
            years_seen.append(form.tax_year)

    if years_seen:
        tax_year = years_seen[-1]
    elif default_tax_year is not None:
        tax_year = default_tax_year
    else:
        tax_year = date.today().year - 1

    mapping = TaxFormMapping(
        line_items=line_items,
        withheld_tax=withheld,
        tax_year=tax_year,
        tax_years_seen=years_seen,
    )
    if mapping.mixed_tax_years:
        logger.warning("Forms report different tax years %s; using %d",
                       sorted(set(years_seen)), tax_year)
    return mapping
