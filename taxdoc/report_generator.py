"""Tax Summary Report Generator.

Plain-text report of the processed documents, the income line items they
produced, and the federal return summary.
"""

from decimal import Decimal
from typing import Optional

from .models import BatchResult, ProcessingStatus, TaxComputationResult, TaxFormMapping


def fmt(amount) -> str:
    """Format amount as currency."""
    if amount < 0:
        return f"-${abs(amount):,.2f}"
    return f"${amount:,.2f}"


def _sep(char: str = "=", length: int = 72) -> str:
    return char * length


def _line(label: str, amount, width: int = 55) -> str:
    """Format a single line item."""
    value = fmt(amount) if isinstance(amount, (int, float, Decimal)) else amount
    return f"  {label:<{width}} {value:>15}"


def generate_documents_report(batch: BatchResult) -> str:
    """List each document with its form type, payer and status."""
    lines = []
    lines.append("")
    lines.append(_sep("-", 72))
    lines.append("  DOCUMENTS")
    lines.append(_sep("-", 72))
    for doc in batch.documents:
        if doc.status == ProcessingStatus.FAILED:
            lines.append(f"  [FAILED] {doc.source}: {doc.error}")
            continue
        form = doc.form
        payer = f" - {form.payer_name}" if form.payer_name else ""
        year = f" ({form.tax_year})" if form.tax_year else ""
        lines.append(
            f"  [{form.form_type.value}] {doc.source}{payer}{year}"
            f"  confidence {form.confidence:.0%}"
        )
    return "\n".join(lines)


def generate_income_report(mapping: TaxFormMapping) -> str:
    """Income line items and withholding."""
    lines = []
    lines.append("")
    lines.append(_sep("-", 72))
    lines.append(f"  INCOME SUMMARY - Tax Year {mapping.tax_year}")
    lines.append(_sep("-", 72))
    if not mapping.line_items:
        lines.append("    (No income amounts were extracted.)")
    for item in mapping.line_items:
        lines.append(_line(item.description[:55], item.amount))
    lines.append("  " + "-" * 68)
    lines.append(_line("Total Income", mapping.total_income))
    lines.append(_line("Federal Tax Withheld", mapping.withheld_tax))
    if mapping.mixed_tax_years:
        years = ", ".join(str(y) for y in sorted(set(mapping.tax_years_seen)))
        lines.append(f"\n  WARNING: documents report different tax years ({years}).")
    return "\n".join(lines)


def generate_federal_report(result: TaxComputationResult) -> str:
    """Generate a report mimicking the Form 1040 summary lines."""
    lines = []
    lines.append("")
    lines.append(_sep("=", 72))
    lines.append(f"  FORM 1040 - U.S. Individual Income Tax Return (Tax Year {result.tax_year})")
    lines.append(_sep("=", 72))
    lines.append(f"  Filing Status:  {result.filing_status.value.replace('_', ' ').title()}")

    lines.append("\n  INCOME")
    lines.append("  " + "-" * 68)
    lines.append(_line("9.   Total Income", result.total_income))
    lines.append(_line("11.  Adjusted Gross Income (AGI)", result.adjusted_gross_income))

    method = "ITEMIZED" if result.deduction_applied != result.standard_deduction else "STANDARD"
    lines.append("")
    lines.append(f"  DEDUCTIONS ({method})")
    lines.append("  " + "-" * 68)
    lines.append(_line("     Standard Deduction", result.standard_deduction))
    if result.itemized_deduction is not None:
        lines.append(_line("     Itemized Deductions", result.itemized_deduction))
    lines.append(_line("12.  Deduction Amount", result.deduction_applied))

    lines.append("")
    lines.append("  TAX COMPUTATION")
    lines.append("  " + "-" * 68)
    lines.append(_line("15.  Taxable Income", result.taxable_income))
    lines.append(_line("16.  Income Tax", result.tax_liability))
    lines.append(_line("     Total Credits", result.total_credits))

    lines.append("")
    lines.append("  PAYMENTS")
    lines.append("  " + "-" * 68)
    lines.append(_line("     Total Payments", result.total_payments))

    lines.append("\n  " + "=" * 68)
    if result.amount_owed > 0:
        lines.append(_line("FEDERAL TAX OWED", result.amount_owed))
    else:
        lines.append(_line("FEDERAL REFUND", result.refund_amount))
    return "\n".join(lines)


def generate_full_report(batch: BatchResult, result: Optional[TaxComputationResult] = None) -> str:
    """
    Generate the complete Tax Summary Report.

    Includes:
    - Processed documents
    - Income summary
    - Federal return summary (when calculated)
    """
    lines = []
    lines.append("")
    lines.append(_sep("*", 72))
    lines.append(f"  TAX SUMMARY REPORT - Tax Year {batch.mapping.tax_year}")
    lines.append(_sep("*", 72))
    lines.append(generate_documents_report(batch))
    lines.append(generate_income_report(batch.mapping))
    if result is not None:
        lines.append(generate_federal_report(result))
    lines.append("")
    return "\n".join(lines)
