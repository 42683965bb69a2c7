"""Forms without a typed layout (OTHER / UNKNOWN).

Every known label is tried with the label-anchored strategies only; the
statistical guess is never applied to a form we could not classify.
Box-number labels are skipped since box numbers mean different things on
different forms.
"""

from dataclasses import replace

from ..models import ExtractedForm, FormType
from ..strategies import mine_amounts
from . import all_fields, register
from .common import build_form, extract_payer_recipient


def _descriptive_fields():
    return [
        replace(spec, labels=spec.labels[:1], fallback=None, relative_to=None)
        for spec in all_fields()
    ]


def _parse_unmapped(form_type: FormType, text: str) -> ExtractedForm:
    amounts = mine_amounts(text, _descriptive_fields())
    payer, recipient = extract_payer_recipient(text)
    return build_form(form_type, text, amounts, payer, recipient)


@register(FormType.UNKNOWN, [])
def parse_unknown(text: str):
    return _parse_unmapped(FormType.UNKNOWN, text)


@register(FormType.OTHER, [])
def parse_other(text: str):
    return _parse_unmapped(FormType.OTHER, text)
