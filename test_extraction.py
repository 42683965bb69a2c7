"""Tests for field extraction: strategies, per-form parsers and entity mapping."""

from datetime import date
from decimal import Decimal

import pytest

from taxdoc.classifier import classify
from taxdoc.data_extractor import TaxDataExtractor
from taxdoc.document_parser import AcquisitionError, Entity
from taxdoc.form_parsers import available_forms, get_fields, get_parser
from taxdoc.income_mapping import map_extracted_data_to_income_entries
from taxdoc.models import (
    FormType, Form1099Div, Form1099G, Form1099Int, Form1099Misc, Form1099Nec,
    Form1099R, IncomeType, UnmappedAmounts, W2Data,
)
from taxdoc.strategies import (
    extract_tax_year, is_incidental_number, numeric_tokens, parse_amount,
    recover_company_name, recover_name, recover_name_from_lines,
)


W2_TEXT = """
Form W-2 Wage and Tax Statement 2024
OMB No. 1545-0008
a Employee's social security number 123-45-6789
b Employer identification number (EIN) 12-3456789
c Employer's name, address, and ZIP code
Acme Widgets Inc
100 Main Street
Springfield, IL 62701
e Employee's first name and initial Last name
John Smith
1 Wages, tips, other compensation 55,000.00
2 Federal income tax withheld 6,200.00
3 Social security wages 55,000.00
4 Social security tax withheld 3,410.00
5 Medicare wages and tips 55,000.00
6 Medicare tax withheld 797.50
16 State wages, tips, etc. 55,000.00
17 State income tax 2,100.00
"""

# Values separated from their labels, as OCR of a scanned W-2 often is
W2_NOISY_TEXT = """
W-2 2024
Control number 123456789
Employer ID 12-3456789
SSN 123-45-6789
OMB No. 1545-0008
Springfield IL 62701
48,250.00
5,100.00
"""

NEC_TEXT = """
Form 1099-NEC Nonemployee Compensation 2024
PAYER'S name, street address, city or town, state or province, country, ZIP
Bright Consulting LLC
PAYER'S TIN 98-7654321
RECIPIENT'S TIN 123-45-6789
RECIPIENT'S name
Jane Doe
1 Nonemployee compensation $5,000.00
4 Federal income tax withheld $500.00
"""


def test_parse_amount():
    assert parse_amount("$1,234.56") == Decimal("1234.56")
    assert parse_amount("  800 ") == Decimal("800")
    assert parse_amount("-5.00") is None
    assert parse_amount("N/A") is None
    assert parse_amount("") is None
    assert parse_amount(None) is None


def test_incidental_numbers():
    assert is_incidental_number("123456789")
    assert is_incidental_number("2024")
    assert not is_incidental_number("1234567.89")
    assert not is_incidental_number("55,000.00")


def test_numeric_tokens_mask_identifiers():
    tokens = numeric_tokens("SSN 123-45-6789 EIN 12-3456789 OMB 1545-0008 IL 62701 total 1,500.00")
    assert tokens == ["1,500.00"]


def test_tax_year():
    assert extract_tax_year("Statement for 2024 wages") == 2024
    assert extract_tax_year("Amount 2024.50 for tax year 2023") == 2023
    assert extract_tax_year("Form 1099 only") is None
    assert extract_tax_year("year 2099", today=date(2024, 6, 1)) is None


def test_w2_labeled_fields():
    form = get_parser(FormType.W2)(W2_TEXT)
    assert isinstance(form.data, W2Data)
    assert form.data.wages == Decimal("55000.00")
    assert form.data.federal_income_tax_withheld == Decimal("6200.00")
    assert form.data.social_security_wages == Decimal("55000.00")
    assert form.data.social_security_tax_withheld == Decimal("3410.00")
    assert form.data.medicare_wages == Decimal("55000.00")
    assert form.data.medicare_tax_withheld == Decimal("797.50")
    assert form.data.state_wages == Decimal("55000.00")
    assert form.data.state_tax_withheld == Decimal("2100.00")
    assert form.tax_year == 2024
    assert form.confidence == 0.6


def test_w2_parties():
    form = get_parser(FormType.W2)(W2_TEXT)
    assert form.payer.name == "Acme Widgets Inc"
    assert form.payer.tax_id == "12-3456789"
    assert form.recipient.name == "John Smith"
    assert form.recipient.tax_id == "123-45-6789"


def test_w2_statistical_fallback():
    form = get_parser(FormType.W2)(W2_NOISY_TEXT)
    assert form.data.wages == Decimal("48250.00")
    assert form.data.federal_income_tax_withheld == Decimal("5100.00")
    assert form.data.social_security_wages is None


def test_identifier_next_to_wages_label_is_never_wages():
    text = (
        "Wages, tips, other compensation 123456789\n"
        "52,000.00\n"
    )
    form = get_parser(FormType.W2)(text)
    assert form.data.wages == Decimal("52000.00")


def test_withheld_fallback_bounded_by_wages():
    # 30,000 is more than half of wages, so it can't be the withholding
    text = "W-2\n40,000.00\n30,000.00\n"
    form = get_parser(FormType.W2)(text)
    assert form.data.wages == Decimal("40000.00")
    assert form.data.federal_income_tax_withheld is None


def test_implausible_labeled_wages_rejected():
    text = "Wages, tips, other compensation 250.00\n"
    form = get_parser(FormType.W2)(text)
    assert form.data.wages is None


def test_empty_text_has_zero_confidence():
    form = get_parser(FormType.W2)("nothing useful here")
    assert form.amounts == {}
    assert form.confidence == 0.0


def test_1099_nec():
    form = get_parser(FormType.FORM_1099_NEC)(NEC_TEXT)
    assert isinstance(form.data, Form1099Nec)
    assert form.data.nonemployee_compensation == Decimal("5000.00")
    assert form.data.federal_income_tax_withheld == Decimal("500.00")
    assert form.payer.name == "Bright Consulting LLC"
    assert form.payer.tax_id == "98-7654321"
    assert form.recipient.name == "Jane Doe"
    assert form.recipient.tax_id == "123-45-6789"
    assert form.tax_year == 2024


def test_1099_int_label_and_box():
    form = get_parser(FormType.FORM_1099_INT)(
        "Form 1099-INT 2024\nPAYER'S name: First Community Bank\n1 Interest income $1,234.56\n"
    )
    assert isinstance(form.data, Form1099Int)
    assert form.data.interest_income == Decimal("1234.56")
    assert form.payer_name == "First Community Bank"


def test_1099_r_value_on_following_line():
    text = (
        "Form 1099-R Distributions From Pensions 2024\n"
        "1 Gross distribution\n"
        "$20,000.00\n"
        "2a Taxable amount $18,000.00\n"
        "2b Taxable amount not determined\n"
        "4 Federal income tax withheld\n"
        "\n"
        "2,000.00\n"
    )
    form = get_parser(FormType.FORM_1099_R)(text)
    assert isinstance(form.data, Form1099R)
    assert form.data.gross_distribution == Decimal("20000.00")
    assert form.data.taxable_amount == Decimal("18000.00")
    assert form.data.federal_income_tax_withheld == Decimal("2000.00")


def test_unknown_form_collects_labeled_amounts():
    text = "Annual statement\nInterest income 200.00\nFederal income tax withheld 20.00\n"
    form = get_parser(FormType.UNKNOWN)(text)
    assert form.form_type == FormType.UNKNOWN
    assert isinstance(form.data, UnmappedAmounts)
    assert form.amounts == {
        "interest_income": Decimal("200.00"),
        "federal_income_tax_withheld": Decimal("20.00"),
    }


def test_unknown_form_skips_statistical_guess():
    form = get_parser(FormType.UNKNOWN)("Statement\n48,250.00\n5,100.00\n")
    assert form.amounts == {}


def test_every_form_type_has_a_parser():
    assert set(available_forms()) == set(FormType)


def test_recover_name_skips_form_vocabulary():
    text = "Employee's first name and initial\nSocial Security\nMaria Lopez\n"
    assert recover_name(text, r"Employee.?s\s+first\s+name") == "Maria Lopez"


def test_recover_name_from_lines():
    assert recover_name_from_lines("Copy B\nMaria\nLopez\n") == "Maria Lopez"


def test_recover_company_name_anywhere():
    assert recover_company_name("misc\nNorthwind Traders LLC\nmore") == "Northwind Traders LLC"
    assert recover_company_name("Federal Wages Inc") is None


class TestEntityExtraction:

    def setup_method(self):
        self.extractor = TaxDataExtractor()

    def test_vendor_w2_entities(self):
        entities = [
            Entity("wages_tips_other_compensation", "$52,000.00", confidence=0.95),
            Entity("federal_income_tax_withheld", "6,000.00", confidence=0.8),
            Entity("employer_name", "Acme Corp"),
            Entity("employer_ein", "123456789"),
            Entity("employee_name", "John Smith"),
            Entity("control_number", "A1B2"),
        ]
        form = self.extractor.extract(FormType.W2, "W-2 Wage and Tax Statement 2024", entities)
        assert form.data.wages == Decimal("52000.00")
        assert form.data.federal_income_tax_withheld == Decimal("6000.00")
        assert form.payer.name == "Acme Corp"
        assert form.payer.tax_id == "12-3456789"
        assert form.recipient.name == "John Smith"
        assert form.extras == {"control_number": "A1B2"}
        assert form.confidence == 0.95
        assert form.tax_year == 2024

    def test_normalized_value_preferred(self):
        entities = [Entity("wages_tips_other_compensation", "52,OOO.OO", normalized_value="52000.00")]
        form = self.extractor.extract(FormType.W2, "", entities)
        assert form.data.wages == Decimal("52000.00")
        assert form.confidence == 0.9

    def test_implausible_entity_dropped(self):
        entities = [
            Entity("wages_tips_other_compensation", "5,000,000.00"),
            Entity("employer_name", "Acme Corp"),
        ]
        form = self.extractor.extract(FormType.W2, "", entities)
        assert form.data.wages is None
        assert form.payer_name == "Acme Corp"

    def test_spreadsheet_labels(self):
        entities = [
            Entity("form type", "1099-NEC", confidence=1.0),
            Entity("payer name", "Bright Consulting LLC", confidence=1.0),
            Entity("box 1 nonemployee compensation", "5000", confidence=1.0),
            Entity("box 4 federal income tax withheld", "500", confidence=1.0),
        ]
        form = self.extractor.extract(FormType.FORM_1099_NEC, "form type 1099-NEC", entities)
        assert form.data.nonemployee_compensation == Decimal("5000")
        assert form.data.federal_income_tax_withheld == Decimal("500")
        assert form.payer_name == "Bright Consulting LLC"
        assert form.confidence == 1.0

    def test_amount_for_other_form_kept_in_extras(self):
        entities = [
            Entity("wages_tips_other_compensation", "52,000.00"),
            Entity("box 1 interest income", "300.00"),
        ]
        form = self.extractor.extract(FormType.FORM_1099_INT, "", entities)
        assert form.data.interest_income == Decimal("300.00")
        assert form.extras == {"wages": "52000.00"}

    def test_unrecognized_entities_fall_back_to_text(self):
        entities = [Entity("mystery_box", "42")]
        form = self.extractor.extract(FormType.FORM_1099_NEC, NEC_TEXT, entities)
        assert form.data.nonemployee_compensation == Decimal("5000.00")
        assert form.extras["mystery_box"] == "42"

    def test_no_entities_uses_text(self):
        form = self.extractor.extract(FormType.W2, W2_TEXT)
        assert form.data.wages == Decimal("55000.00")

    def test_empty_document_is_an_error(self):
        with pytest.raises(AcquisitionError):
            self.extractor.extract(FormType.W2, "   \n")


# ---------------------------------------------------------------------------
# 1099-DIV / MISC / G text mining
# ---------------------------------------------------------------------------

def test_1099_div_total_ordinary_dividends():
    form = get_parser(FormType.FORM_1099_DIV)(
        "Form 1099-DIV Dividends and Distributions 2024\n"
        "1a Total ordinary dividends $1,200.50\n"
        "1b Qualified dividends $900.00\n"
        "4 Federal income tax withheld $0.00\n"
    )
    assert isinstance(form.data, Form1099Div)
    assert form.data.ordinary_dividends == Decimal("1200.50")
    assert form.data.qualified_dividends == Decimal("900.00")
    assert form.data.federal_income_tax_withheld == Decimal("0.00")


def test_1099_div_ordinary_dividends_without_total():
    form = get_parser(FormType.FORM_1099_DIV)(
        "Form 1099-DIV 2024\nOrdinary dividends $850.00\nQualified dividends $400.00\n"
    )
    assert form.data.ordinary_dividends == Decimal("850.00")
    assert form.data.qualified_dividends == Decimal("400.00")


def test_1099_misc_miscellaneous_income_label():
    form = get_parser(FormType.FORM_1099_MISC)(
        "Form 1099-MISC 2024\nMiscellaneous income $1,500.00\n"
    )
    assert isinstance(form.data, Form1099Misc)
    assert form.data.miscellaneous_income == Decimal("1500.00")


def test_1099_misc_rents_and_other_income():
    form = get_parser(FormType.FORM_1099_MISC)(
        "Form 1099-MISC Miscellaneous Information 2024\n"
        "1 Rents $12,000.00\n"
        "3 Other income $1,500.00\n"
    )
    assert form.data.rents == Decimal("12000.00")
    assert form.data.miscellaneous_income == Decimal("1500.00")


def test_1099_g():
    form = get_parser(FormType.FORM_1099_G)(
        "Form 1099-G Certain Government Payments 2024\n"
        "1 Unemployment compensation $3,600.00\n"
        "2 State or local income tax refunds, credits, or offsets $215.00\n"
        "4 Federal income tax withheld $360.00\n"
    )
    assert isinstance(form.data, Form1099G)
    assert form.data.unemployment_compensation == Decimal("3600.00")
    assert form.data.state_tax_refund == Decimal("215.00")
    assert form.data.federal_income_tax_withheld == Decimal("360.00")


def test_currency_marked_year_shaped_amount_is_kept():
    form = get_parser(FormType.FORM_1099_NEC)(
        "Nonemployee compensation $2000\nFederal income tax withheld $200"
    )
    assert form.data.nonemployee_compensation == Decimal("2000")
    assert form.data.federal_income_tax_withheld == Decimal("200")


def test_bare_year_after_label_is_skipped():
    spec = get_fields(FormType.FORM_1099_NEC)[0]
    assert spec.accept("2024") is None
    assert spec.accept("$2024") == Decimal("2024")
    assert spec.accept("2,024") == Decimal("2024")


def test_labeled_seven_digit_amount_uses_plausible_range():
    form = get_parser(FormType.FORM_1099_R)(
        "Form 1099-R 2024\n1 Gross distribution $1,250,000\n"
    )
    assert form.data.gross_distribution == Decimal("1250000")
    assert form.confidence == 0.6

    form = get_parser(FormType.FORM_1099_R)("1 Gross distribution\n1250000\n")
    assert form.data.gross_distribution == Decimal("1250000")


@pytest.mark.parametrize("text, expected", [
    (
        "Form 1099-MISC 2024\nPAYER'S name: Harbor Properties LLC\n"
        "Miscellaneous income $1,500.00\n",
        [(IncomeType.OTHER_INCOME, Decimal("1500.00"))],
    ),
    (
        "Form 1099-DIV Dividends and Distributions 2024\n"
        "PAYER'S name: Vanguard Brokerage\n"
        "Ordinary dividends $850.00\nQualified dividends $400.00\n",
        [(IncomeType.DIVIDENDS, Decimal("850.00")), (IncomeType.DIVIDENDS, Decimal("400.00"))],
    ),
])
def test_classify_extract_and_map(text, expected):
    form_type = classify(text)
    form = TaxDataExtractor().extract(form_type, text)
    mapping = map_extracted_data_to_income_entries([form])
    assert [(i.income_type, i.amount) for i in mapping.line_items] == expected
    assert mapping.tax_year == 2024
