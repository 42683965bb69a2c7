"""Data models for extracted tax forms, income line items and return results."""

from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Dict, List, Optional, Tuple, Type, Union


class FormType(Enum):
    """Tax form types the pipeline can recognize."""
    W2 = "W-2"
    FORM_1099_NEC = "1099-NEC"
    FORM_1099_INT = "1099-INT"
    FORM_1099_DIV = "1099-DIV"
    FORM_1099_MISC = "1099-MISC"
    FORM_1099_R = "1099-R"
    FORM_1099_G = "1099-G"
    OTHER = "OTHER"
    UNKNOWN = "UNKNOWN"


class IncomeType(Enum):
    """Income categories a line item can contribute to."""
    WAGES = "wages"
    INTEREST = "interest"
    DIVIDENDS = "dividends"
    BUSINESS_INCOME = "business_income"
    RETIREMENT_DISTRIBUTIONS = "retirement_distributions"
    OTHER_INCOME = "other_income"


class FilingStatus(Enum):
    """Tax filing status options."""
    SINGLE = "single"
    MARRIED_FILING_JOINTLY = "married_filing_jointly"
    MARRIED_FILING_SEPARATELY = "married_filing_separately"
    HEAD_OF_HOUSEHOLD = "head_of_household"


class ProcessingStatus(Enum):
    """Processing state of one uploaded document."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Map config / CLI filing status strings to enum
STATUS_MAP = {
    "single": FilingStatus.SINGLE,
    "married_jointly": FilingStatus.MARRIED_FILING_JOINTLY,
    "married_filing_jointly": FilingStatus.MARRIED_FILING_JOINTLY,
    "married_separately": FilingStatus.MARRIED_FILING_SEPARATELY,
    "married_filing_separately": FilingStatus.MARRIED_FILING_SEPARATELY,
    "head_of_household": FilingStatus.HEAD_OF_HOUSEHOLD,
}


def parse_filing_status(value: Union[str, FilingStatus]) -> FilingStatus:
    """Resolve a filing status from an enum, its name, or a CLI alias."""
    if isinstance(value, FilingStatus):
        return value
    key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    if key not in STATUS_MAP:
        raise ValueError(
            f"Unknown filing status: {value!r}. Available: {sorted(STATUS_MAP)}"
        )
    return STATUS_MAP[key]


def parse_form_type(value: Union[str, FormType]) -> FormType:
    """Resolve a form type from an enum, its value ('1099-NEC', '1099_NEC') or its name."""
    if isinstance(value, FormType):
        return value
    text = str(value).strip().upper()
    for form_type in FormType:
        if text in (form_type.value, form_type.name) or text.replace("_", "-") == form_type.value:
            return form_type
    raise ValueError(f"Unknown form type: {value!r}")


def to_decimal(value) -> Decimal:
    """Convert an int, float, str or Decimal to Decimal without float noise."""
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).replace(",", "").replace("$", "").strip())
        except InvalidOperation:
            raise ValueError(f"Not a valid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Not a valid amount: {value!r}")
    return amount


@dataclass
class Party:
    """Payer/employer or recipient/employee identity on a form."""
    name: Optional[str] = None
    tax_id: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.name and not self.tax_id


class FormData:
    """Base for the per-form typed amount fields."""

    def amounts(self) -> Dict[str, Decimal]:
        """Return the amount fields that are present."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]


@dataclass
class W2Data(FormData):
    """W-2 wage and tax statement amounts."""
    wages: Optional[Decimal] = None  # Box 1: Wages, tips, other compensation
    federal_income_tax_withheld: Optional[Decimal] = None  # Box 2
    social_security_wages: Optional[Decimal] = None  # Box 3
    social_security_tax_withheld: Optional[Decimal] = None  # Box 4
    medicare_wages: Optional[Decimal] = None  # Box 5
    medicare_tax_withheld: Optional[Decimal] = None  # Box 6
    state_wages: Optional[Decimal] = None  # Box 16
    state_tax_withheld: Optional[Decimal] = None  # Box 17


@dataclass
class Form1099Nec(FormData):
    """1099-NEC form data for non-employee compensation."""
    nonemployee_compensation: Optional[Decimal] = None  # Box 1
    federal_income_tax_withheld: Optional[Decimal] = None  # Box 4


@dataclass
class Form1099Int(FormData):
    """1099-INT form data for interest income."""
    interest_income: Optional[Decimal] = None  # Box 1
    federal_income_tax_withheld: Optional[Decimal] = None  # Box 4


@dataclass
class Form1099Div(FormData):
    """1099-DIV form data for dividend income."""
    ordinary_dividends: Optional[Decimal] = None  # Box 1a
    qualified_dividends: Optional[Decimal] = None  # Box 1b
    federal_income_tax_withheld: Optional[Decimal] = None  # Box 4


@dataclass
class Form1099Misc(FormData):
    """1099-MISC form data for rents and miscellaneous income."""
    rents: Optional[Decimal] = None  # Box 1
    miscellaneous_income: Optional[Decimal] = None  # Box 3
    federal_income_tax_withheld: Optional[Decimal] = None  # Box 4


@dataclass
class Form1099R(FormData):
    """1099-R form data for retirement distributions."""
    gross_distribution: Optional[Decimal] = None  # Box 1
    taxable_amount: Optional[Decimal] = None  # Box 2a
    federal_income_tax_withheld: Optional[Decimal] = None  # Box 4


@dataclass
class Form1099G(FormData):
    """1099-G form data for government payments."""
    unemployment_compensation: Optional[Decimal] = None  # Box 1
    state_tax_refund: Optional[Decimal] = None  # Box 2
    federal_income_tax_withheld: Optional[Decimal] = None  # Box 4


@dataclass
class UnmappedAmounts(FormData):
    """Amounts recovered from a form with no typed layout."""
    values: Dict[str, Decimal] = field(default_factory=dict)

    def amounts(self) -> Dict[str, Decimal]:
        return dict(self.values)


FORM_DATA_TYPES: Dict[FormType, Type[FormData]] = {
    FormType.W2: W2Data,
    FormType.FORM_1099_NEC: Form1099Nec,
    FormType.FORM_1099_INT: Form1099Int,
    FormType.FORM_1099_DIV: Form1099Div,
    FormType.FORM_1099_MISC: Form1099Misc,
    FormType.FORM_1099_R: Form1099R,
    FormType.FORM_1099_G: Form1099G,
}


def build_form_data(
    form_type: FormType, amounts: Dict[str, Decimal]
) -> Tuple[FormData, Dict[str, Decimal]]:
    """
    Split an amount mapping into the typed variant for ``form_type``.

    Returns:
        Tuple of (form data, amounts that do not belong to the variant)
    """
    for name, value in amounts.items():
        if value < 0:
            raise ValueError(f"Negative amount for {name}: {value}")

    data_type = FORM_DATA_TYPES.get(form_type)
    if data_type is None:
        return UnmappedAmounts(values=dict(amounts)), {}

    known = set(data_type.field_names())
    typed = {k: v for k, v in amounts.items() if k in known}
    leftover = {k: v for k, v in amounts.items() if k not in known}
    return data_type(**typed), leftover


@dataclass
class ExtractedForm:
    """Result of parsing one tax document."""
    form_type: FormType
    data: FormData
    tax_year: Optional[int] = None
    payer: Optional[Party] = None
    recipient: Optional[Party] = None
    extras: Dict[str, str] = field(default_factory=dict)
    raw_text: str = ""
    confidence: float = 0.0

    @property
    def amounts(self) -> Dict[str, Decimal]:
        return self.data.amounts()

    @property
    def federal_income_tax_withheld(self) -> Optional[Decimal]:
        return self.amounts.get("federal_income_tax_withheld")

    @property
    def payer_name(self) -> Optional[str]:
        return self.payer.name if self.payer else None

    @property
    def payer_tax_id(self) -> Optional[str]:
        return self.payer.tax_id if self.payer else None

    def to_dict(self) -> dict:
        """Serialize for the persistence / JSON collaborators."""
        return {
            "form_type": self.form_type.value,
            "tax_year": self.tax_year,
            "payer": _party_to_dict(self.payer),
            "recipient": _party_to_dict(self.recipient),
            "amounts": {k: str(v) for k, v in self.amounts.items()},
            "extras": dict(self.extras),
            "raw_text": self.raw_text,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "ExtractedForm":
        """Rebuild a form from ``to_dict`` output (or a hand-written equivalent)."""
        form_type = parse_form_type(payload.get("form_type") or FormType.UNKNOWN)
        amounts = {
            k: to_decimal(v) for k, v in (payload.get("amounts") or {}).items()
        }
        data, leftover = build_form_data(form_type, amounts)
        extras = dict(payload.get("extras") or {})
        extras.update({k: str(v) for k, v in leftover.items()})
        tax_year = payload.get("tax_year")
        return cls(
            form_type=form_type,
            data=data,
            tax_year=int(tax_year) if tax_year else None,
            payer=_party_from_dict(payload.get("payer")),
            recipient=_party_from_dict(payload.get("recipient")),
            extras=extras,
            raw_text=payload.get("raw_text") or "",
            confidence=float(payload.get("confidence") or 0.0),
        )


def _party_to_dict(party: Optional[Party]) -> Optional[dict]:
    if party is None:
        return None
    return {"name": party.name, "tax_id": party.tax_id}


def _party_from_dict(payload: Optional[dict]) -> Optional[Party]:
    if not payload:
        return None
    return Party(name=payload.get("name"), tax_id=payload.get("tax_id"))


@dataclass
class IncomeLineItem:
    """One income row contributed to a return."""
    income_type: IncomeType
    description: str
    amount: Decimal
    payer_name: Optional[str] = None
    payer_tax_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "income_type": self.income_type.value,
            "description": self.description,
            "amount": str(self.amount),
            "payer_name": self.payer_name,
            "payer_tax_id": self.payer_tax_id,
        }


@dataclass
class TaxFormMapping:
    """Line items and withholding aggregated across one filing's forms."""
    line_items: List[IncomeLineItem]
    withheld_tax: Decimal
    tax_year: int
    tax_years_seen: List[int] = field(default_factory=list)

    @property
    def mixed_tax_years(self) -> bool:
        return len(set(self.tax_years_seen)) > 1

    @property
    def total_income(self) -> Decimal:
        return sum((item.amount for item in self.line_items), Decimal("0"))

    def to_dict(self) -> dict:
        return {
            "line_items": [item.to_dict() for item in self.line_items],
            "withheld_tax": str(self.withheld_tax),
            "tax_year": self.tax_year,
            "tax_years_seen": list(self.tax_years_seen),
            "mixed_tax_years": self.mixed_tax_years,
            "total_income": str(self.total_income),
        }


@dataclass
class TaxComputationResult:
    """Result of the federal tax calculation."""
    filing_status: FilingStatus
    tax_year: int
    total_income: Decimal
    adjusted_gross_income: Decimal
    standard_deduction: Decimal
    itemized_deduction: Optional[Decimal]
    deduction_applied: Decimal
    taxable_income: Decimal
    tax_liability: Decimal
    total_credits: Decimal
    total_payments: Decimal
    refund_amount: Decimal
    amount_owed: Decimal

    @property
    def refund_or_owed(self) -> Decimal:
        """Refund (positive) or amount owed (negative)."""
        return self.refund_amount - self.amount_owed

    def to_dict(self) -> dict:
        return {
            "filing_status": self.filing_status.value,
            "tax_year": self.tax_year,
            "total_income": str(self.total_income),
            "adjusted_gross_income": str(self.adjusted_gross_income),
            "standard_deduction": str(self.standard_deduction),
            "itemized_deduction": (
                str(self.itemized_deduction)
                if self.itemized_deduction is not None else None
            ),
            "deduction_applied": str(self.deduction_applied),
            "taxable_income": str(self.taxable_income),
            "tax_liability": str(self.tax_liability),
            "total_credits": str(self.total_credits),
            "total_payments": str(self.total_payments),
            "refund_amount": str(self.refund_amount),
            "amount_owed": str(self.amount_owed),
        }


@dataclass
class DocumentResult:
    """Outcome of processing one document in a batch."""
    source: str
    status: ProcessingStatus
    form: Optional[ExtractedForm] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "status": self.status.value,
            "form": self.form.to_dict() if self.form else None,
            "error": self.error,
        }


@dataclass
class BatchResult:
    """All documents of one filing plus their combined mapping."""
    documents: List[DocumentResult]
    mapping: TaxFormMapping

    @property
    def forms(self) -> List[ExtractedForm]:
        return [d.form for d in self.documents if d.form is not None]

    @property
    def failed(self) -> List[DocumentResult]:
        return [d for d in self.documents if d.status == ProcessingStatus.FAILED]
