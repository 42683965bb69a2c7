"""Text-mining parsers for each supported tax form.

Each module provides a parser function: text -> ExtractedForm, and
registers it together with the amount fields it mines.
"""

from typing import Callable, Dict, List, Tuple

from ..models import ExtractedForm, FormType
from ..strategies import AmountField

# Type alias for parser functions
ParserFn = Callable[[str], ExtractedForm]

# Registry: form type -> (parser_function, amount field specs)
_REGISTRY: Dict[FormType, Tuple[ParserFn, List[AmountField]]] = {}


def register(form_type: FormType, fields: List[AmountField]):
    """Decorator to register a form parser."""
    def decorator(fn: ParserFn) -> ParserFn:
        _REGISTRY[form_type] = (fn, list(fields))
        return fn
    return decorator


def get_parser(form_type: FormType) -> ParserFn:
    """Get the text-mining parser for a form type."""
    if form_type not in _REGISTRY:
        raise ValueError(
            f"Unknown form: {form_type}. Available: {[f.value for f in _REGISTRY]}"
        )
    return _REGISTRY[form_type][0]


def get_fields(form_type: FormType) -> List[AmountField]:
    """Amount field specs mined for a form type (empty when none)."""
    if form_type not in _REGISTRY:
        return []
    return list(_REGISTRY[form_type][1])


def all_fields() -> List[AmountField]:
    """Every registered amount field, first registration wins per name."""
    seen: Dict[str, AmountField] = {}
    for _, fields in _REGISTRY.values():
        for spec in fields:
            seen.setdefault(spec.name, spec)
    return list(seen.values())


def available_forms() -> list:
    """Return list of registered form types."""
    return list(_REGISTRY.keys())


# Import all parser modules to trigger registration
from . import w2  # noqa: E402, F401
from . import f1099  # noqa: E402, F401
from . import unknown  # noqa: E402, F401
