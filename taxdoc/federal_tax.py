"""Federal income tax calculation."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Tuple, Union

from .models import FilingStatus, TaxComputationResult, parse_filing_status, to_decimal

CENTS = Decimal("0.01")
INFINITY = Decimal("Infinity")


class TaxCalculationError(ValueError):
    """Invalid input to the tax calculation."""


def _brackets(*pairs) -> List[Tuple[Decimal, Decimal]]:
    return [(Decimal(str(limit)), Decimal(rate)) for limit, rate in pairs]


# Federal Tax Brackets by year
# Format: (upper_limit, rate)
FEDERAL_TAX_BRACKETS = {
    2024: {
        FilingStatus.SINGLE: _brackets(
            (11_600, "0.10"),
            (47_150, "0.12"),
            (100_525, "0.22"),
            (191_950, "0.24"),
            (243_725, "0.32"),
            (609_350, "0.35"),
            (INFINITY, "0.37"),
        ),
        FilingStatus.MARRIED_FILING_JOINTLY: _brackets(
            (23_200, "0.10"),
            (94_300, "0.12"),
            (201_050, "0.22"),
            (383_900, "0.24"),
            (487_450, "0.32"),
            (731_200, "0.35"),
            (INFINITY, "0.37"),
        ),
        FilingStatus.MARRIED_FILING_SEPARATELY: _brackets(
            (11_600, "0.10"),
            (47_150, "0.12"),
            (100_525, "0.22"),
            (191_950, "0.24"),
            (243_725, "0.32"),
            (365_600, "0.35"),
            (INFINITY, "0.37"),
        ),
        FilingStatus.HEAD_OF_HOUSEHOLD: _brackets(
            (16_550, "0.10"),
            (63_100, "0.12"),
            (100_500, "0.22"),
            (191_950, "0.24"),
            (243_700, "0.32"),
            (609_350, "0.35"),
            (INFINITY, "0.37"),
        ),
    },
}

STANDARD_DEDUCTION = {
    2024: {
        FilingStatus.SINGLE: Decimal("14600"),
        FilingStatus.MARRIED_FILING_JOINTLY: Decimal("29200"),
        FilingStatus.MARRIED_FILING_SEPARATELY: Decimal("14600"),
        FilingStatus.HEAD_OF_HOUSEHOLD: Decimal("21900"),
    },
}

DEFAULT_TAX_YEAR = 2024


def supported_tax_years() -> List[int]:
    return sorted(FEDERAL_TAX_BRACKETS)


def _amount(value, name: str) -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError as e:
        raise TaxCalculationError(f"{name}: {e}") from e
    if amount < 0:
        raise TaxCalculationError(f"{name} cannot be negative: {amount}")
    return amount


class FederalTaxCalculator:
    """Calculate federal income tax for one filing status and tax year."""

    def __init__(
        self,
        filing_status: Union[FilingStatus, str] = FilingStatus.SINGLE,
        tax_year: int = DEFAULT_TAX_YEAR,
    ):
        """
        Initialize the federal tax calculator.

        Args:
            filing_status: The taxpayer's filing status (enum or CLI alias)
            tax_year: Tax year whose tables apply

        Raises:
            TaxCalculationError: unknown filing status or unsupported year
        """
        try:
            self.filing_status = parse_filing_status(filing_status)
        except ValueError as e:
            raise TaxCalculationError(str(e)) from e
        if tax_year not in FEDERAL_TAX_BRACKETS:
            raise TaxCalculationError(
                f"Tax year {tax_year} is not supported (available: {supported_tax_years()})"
            )
        self.tax_year = tax_year
        self.brackets = FEDERAL_TAX_BRACKETS[tax_year][self.filing_status]
        self.standard_deduction = STANDARD_DEDUCTION[tax_year][self.filing_status]

    def get_standard_deduction(self) -> Decimal:
        return self.standard_deduction

    def bracket_schedule(self) -> List[Dict[str, Decimal]]:
        """
        Brackets with the tax owed at each lower bound.

        Returns:
            List of {'lower', 'upper', 'rate', 'base_tax'} in ascending order
        """
        schedule = []
        lower = Decimal("0")
        base_tax = Decimal("0")
        for upper, rate in self.brackets:
            schedule.append({'lower': lower, 'upper': upper, 'rate': rate, 'base_tax': base_tax})
            if upper != INFINITY:
                base_tax += (upper - lower) * rate
            lower = upper
        return schedule

    def calculate_progressive_tax(self, taxable_income) -> Tuple[Decimal, list]:
        """
        Calculate tax using progressive brackets.

        Args:
            taxable_income: Income after deductions

        Returns:
            Tuple of (total tax rounded to cents, breakdown by bracket)
        """
        taxable_income = _amount(taxable_income, "taxable_income")
        if taxable_income <= 0:
            return Decimal("0.00"), []

        total_tax = Decimal("0")
        breakdown = []
        for row in self.bracket_schedule():
            lower, upper, rate = row['lower'], row['upper'], row['rate']
            if taxable_income <= lower:
                break
            bracket_income = min(taxable_income, upper) - lower
            bracket_tax = bracket_income * rate
            total_tax += bracket_tax
            breakdown.append({
                'bracket': f"${lower:,.0f} - ${upper:,.0f}" if upper != INFINITY else f"${lower:,.0f}+",
                'rate': rate,
                'income': bracket_income,
                'tax': bracket_tax,
            })

        return total_tax.quantize(CENTS, rounding=ROUND_HALF_UP), breakdown

    def calculate_marginal_rate(self, taxable_income) -> Decimal:
        """Marginal tax rate for the given taxable income."""
        taxable_income = _amount(taxable_income, "taxable_income")
        for upper_limit, rate in self.brackets:
            if taxable_income <= upper_limit:
                return rate
        return self.brackets[-1][1]

    @staticmethod
    def calculate_effective_rate(result: TaxComputationResult) -> Decimal:
        """Liability as a share of total income."""
        if result.total_income <= 0:
            return Decimal("0")
        return result.tax_liability / result.total_income

    def calculate(
        self,
        total_income,
        withheld_tax,
        itemized_deduction=None,
        credits=0,
    ) -> TaxComputationResult:
        """
        Calculate the federal return summary.

        Args:
            total_income: Sum of income line items
            withheld_tax: Federal income tax already withheld
            itemized_deduction: Itemized deduction total; the larger of this
                and the standard deduction is applied
            credits: Nonrefundable credit total (no credits are computed yet)

        Returns:
            TaxComputationResult
        """
        total_income = _amount(total_income, "total_income")
        withheld_tax = _amount(withheld_tax, "withheld_tax")
        credits = _amount(credits, "credits")
        itemized: Optional[Decimal] = None
        if itemized_deduction is not None:
            itemized = _amount(itemized_deduction, "itemized_deduction")

        # No above-the-line adjustments are modelled
        agi = total_income
        deduction = max(self.standard_deduction, itemized or Decimal("0"))
        taxable_income = max(Decimal("0"), agi - deduction)

        liability, _ = self.calculate_progressive_tax(taxable_income)
        total_payments = withheld_tax + credits

        return TaxComputationResult(
            filing_status=self.filing_status,
            tax_year=self.tax_year,
            total_income=total_income,
            adjusted_gross_income=agi,
            standard_deduction=self.standard_deduction,
            itemized_deduction=itemized,
            deduction_applied=deduction,
            taxable_income=taxable_income,
            tax_liability=liability,
            total_credits=credits,
            total_payments=total_payments,
            refund_amount=max(Decimal("0"), total_payments - liability),
            amount_owed=max(Decimal("0"), liability - total_payments),
        )


def calculate_tax_return(
    total_income,
    withheld_tax,
    filing_status: Union[FilingStatus, str],
    itemized_deduction=None,
    tax_year: int = DEFAULT_TAX_YEAR,
) -> TaxComputationResult:
    """
    Convenience function to calculate a federal return summary.

    Args:
        total_income: Sum of income line items
        withheld_tax: Federal tax withheld
        filing_status: Filing status
        itemized_deduction: Itemized deduction total, if itemizing
        tax_year: Tax year whose tables apply

    Returns:
        Tax calculation result
    """
    calculator = FederalTaxCalculator(filing_status, tax_year)
    return calculator.calculate(total_income, withheld_tax, itemized_deduction)
