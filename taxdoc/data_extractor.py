"""Extract structured tax data from acquired document text and entities."""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from .document_parser import AcquisitionError, Entity
from .form_parsers import all_fields, get_fields, get_parser
from .models import ExtractedForm, FormType, Party, build_form_data
from .strategies import (
    AmountField, extract_tax_year, first_present, normalize_ein, parse_amount,
)

logger = logging.getLogger(__name__)

# Confidence reported when entities carry no score of their own
ENTITY_DEFAULT_CONFIDENCE = 0.9

# Vendor / spreadsheet field tag -> internal field name
ENTITY_FIELD_MAP = {
    # Document AI W-2 parser
    'employee_name': 'employee_name',
    'employee_address': 'employee_address',
    'employee_ssn': 'employee_ssn',
    'employer_name': 'employer_name',
    'employer_address': 'employer_address',
    'employer_ein': 'employer_ein',
    'wages_tips_other_compensation': 'wages',
    'federal_income_tax_withheld': 'federal_income_tax_withheld',
    'social_security_wages': 'social_security_wages',
    'social_security_tax_withheld': 'social_security_tax_withheld',
    'medicare_wages_and_tips': 'medicare_wages',
    'medicare_tax_withheld': 'medicare_tax_withheld',
    'state_wages_tips_etc': 'state_wages',
    'state_income_tax': 'state_tax_withheld',
    # Key/value spreadsheet labels
    'form type': 'form_type',
    'tax year': 'tax_year',
    'employer name': 'employer_name',
    'employer ein': 'employer_ein',
    'employee name': 'employee_name',
    'employee ssn': 'employee_ssn',
    'payer name': 'payer_name',
    'payer tin': 'payer_tin',
    'recipient name': 'recipient_name',
    'recipient tin': 'recipient_tin',
    'box 1 wages': 'wages',
    'box 2 federal income tax withheld': 'federal_income_tax_withheld',
    'box 3 social security wages': 'social_security_wages',
    'box 4 social security tax withheld': 'social_security_tax_withheld',
    'box 5 medicare wages': 'medicare_wages',
    'box 6 medicare tax withheld': 'medicare_tax_withheld',
    'box 16 state wages': 'state_wages',
    'box 17 state income tax': 'state_tax_withheld',
    'box 1 nonemployee compensation': 'nonemployee_compensation',
    'box 1 interest income': 'interest_income',
    'box 1a total ordinary dividends': 'ordinary_dividends',
    'box 1b qualified dividends': 'qualified_dividends',
    'box 1 rents': 'rents',
    'box 3 other income': 'miscellaneous_income',
    'box 1 gross distribution': 'gross_distribution',
    'box 2a taxable amount': 'taxable_amount',
    'box 1 unemployment compensation': 'unemployment_compensation',
    'box 2 state or local income tax refunds': 'state_tax_refund',
    'box 4 federal income tax withheld': 'federal_income_tax_withheld',
}

# Internal field -> (party role, attribute)
PARTY_FIELDS = {
    'employer_name': ('payer', 'name'),
    'employer_ein': ('payer', 'tax_id'),
    'payer_name': ('payer', 'name'),
    'payer_tin': ('payer', 'tax_id'),
    'employee_name': ('recipient', 'name'),
    'employee_ssn': ('recipient', 'tax_id'),
    'recipient_name': ('recipient', 'name'),
    'recipient_tin': ('recipient', 'tax_id'),
}

# Fields that describe the document itself rather than an amount
DOCUMENT_FIELDS = {'form_type', 'tax_year'}


class TaxDataExtractor:
    """Turn acquired text (and optional entities) into an ExtractedForm."""

    def extract(
        self,
        form_type: FormType,
        text: str,
        entities: Optional[List[Entity]] = None,
    ) -> ExtractedForm:
        """
        Extract form data.

        Entities, when they map to known fields, are authoritative.  Otherwise
        the registered text-mining parser for the form type runs over the text.

        Args:
            form_type: Classified form type
            text: Acquired document text
            entities: Structured fields reported by the acquisition source

        Returns:
            ExtractedForm (fields that could not be found are simply absent)

        Raises:
            AcquisitionError: if there is neither text nor entities to work from
        """
        entities = [e for e in (entities or []) if e.type and e.mention_text]
        if not text.strip() and not entities:
            raise AcquisitionError("Document produced no text")

        if entities:
            form = self._from_entities(form_type, text, entities)
            if form is not None:
                return form
            logger.info("Entities mapped to no known field, mining text instead")
            mined = get_parser(form_type)(text)
            mined.extras = {**self._unrecognized(entities), **mined.extras}
            return mined

        return get_parser(form_type)(text)

    @staticmethod
    def _field_name(entity_type: str) -> Optional[str]:
        key = entity_type.strip().lower()
        if key in ENTITY_FIELD_MAP:
            return ENTITY_FIELD_MAP[key]
        return None

    def _unrecognized(self, entities: List[Entity]) -> Dict[str, str]:
        return {
            e.type: e.mention_text for e in entities
            if self._field_name(e.type) is None
        }

    def _from_entities(
        self, form_type: FormType, text: str, entities: List[Entity]
    ) -> Optional[ExtractedForm]:
        specs = self._field_specs(form_type)
        amounts: Dict[str, Decimal] = {}
        parties = {'payer': Party(), 'recipient': Party()}
        extras: Dict[str, str] = {}
        tax_year = None
        recognized = False

        for entity in entities:
            name = self._field_name(entity.type)
            value = (entity.normalized_value or entity.mention_text).strip()
            if name is None:
                extras[entity.type] = entity.mention_text
                continue

            if name in PARTY_FIELDS:
                role, attr = PARTY_FIELDS[name]
                if attr == 'tax_id' and name.endswith('ein'):
                    value = normalize_ein(value) or value
                setattr(parties[role], attr, value)
                recognized = True
            elif name == 'tax_year':
                tax_year = extract_tax_year(value)
            elif name in DOCUMENT_FIELDS:
                continue
            elif name in specs:
                amount = self._accept_amount(specs[name], entity)
                if amount is not None:
                    amounts[name] = amount
                    recognized = True
            else:
                # Recognised but non-monetary (addresses and the like)
                extras[name] = value

        if not recognized:
            return None

        data, leftover = build_form_data(form_type, amounts)
        extras.update({k: str(v) for k, v in leftover.items()})
        scores = [e.confidence for e in entities if e.confidence is not None]
        payer, recipient = parties['payer'], parties['recipient']
        return ExtractedForm(
            form_type=form_type,
            data=data,
            tax_year=tax_year or extract_tax_year(text),
            payer=None if payer.is_empty() else payer,
            recipient=None if recipient.is_empty() else recipient,
            extras=extras,
            raw_text=text,
            confidence=max(scores) if scores else ENTITY_DEFAULT_CONFIDENCE,
        )

    @staticmethod
    def _field_specs(form_type: FormType) -> Dict[str, AmountField]:
        """Plausibility specs for the form, plus every other known field."""
        specs = {spec.name: spec for spec in all_fields()}
        specs.update({spec.name: spec for spec in get_fields(form_type)})
        return specs

    @staticmethod
    def _accept_amount(spec: AmountField, entity: Entity) -> Optional[Decimal]:
        amount = first_present(
            parse_amount(v) for v in (entity.normalized_value, entity.mention_text)
        )
        if amount is None:
            logger.debug("%s: unparseable entity value %r", spec.name, entity.mention_text)
            return None
        if not spec.plausible.contains(amount):
            logger.debug("%s: entity value %s outside plausible range, dropped",
                         spec.name, amount)
            return None
        return amount
