"""
Local, synchronous validation of edit buffers.

Two kinds of checks run before any submission:
- presence: required fields must not hold an empty/placeholder value
- shape: fields with a known structure (lists, flags, numbers) must have it

is_empty_value() is also what hosts use to highlight unpopulated fields.
"""
import math
from typing import Any, Dict, Iterable, List, Tuple

from diligencestate.errors import ParsedError

# Values imported spreadsheets use for "not populated"
EMPTY_VALUES = frozenset({
    '', 'TBD', 'tbd', 'Tbd', 'NA', 'na', 'N/A', 'n/a',
    'MANQUANT', 'manquant', '#ERROR!', '#ERROR', 'ERROR', 'error',
})

# A required field may not hold one of these either
INVALID_DEFAULTS = frozenset({'', '-'})

LIST_FIELDS = frozenset({
    'tech_stack', 'data_types', 'network_security_mechanisms',
    'certifications', 'tools', 'internal_it_systems',
})
BOOL_FIELDS = frozenset({
    'ip_ownership_clear', 'license_compliance_assured', 'centralized_monitoring',
})
NUMBER_FIELDS = frozenset({
    'hosting_monthly', 'licenses_monthly', 'ops_hours_monthly_equiv',
})


def is_empty_value(value: Any) -> bool:
    """True if a value counts as empty or unpopulated."""
    if value is None:
        return True
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return value.strip() in EMPTY_VALUES
    if isinstance(value, (int, float)):
        return isinstance(value, float) and (math.isnan(value) or math.isinf(value))
    if isinstance(value, (list, tuple)):
        return len(value) == 0 or all(is_empty_value(item) for item in value)
    if isinstance(value, dict):
        return len(value) == 0
    return False


def check_required(field_name: str, value: Any) -> List[ParsedError]:
    if value is None or (isinstance(value, str) and value.strip() in INVALID_DEFAULTS):
        return [ParsedError(
            message=f'Field "{field_name}" is required',
            field=field_name,
            reason=f'Field "{field_name}" cannot be empty or "-"',
            suggestion=f'Enter or select a value for "{field_name}"',
        )]
    return []


def check_shape(field_name: str, value: Any) -> List[ParsedError]:
    if value is None:
        return []
    expected = None
    if field_name in LIST_FIELDS and not isinstance(value, (list, tuple)):
        expected = "a list"
    elif field_name in BOOL_FIELDS and not isinstance(value, bool):
        expected = "true or false"
    elif field_name in NUMBER_FIELDS and (isinstance(value, bool) or not isinstance(value, (int, float))):
        expected = "a number"
    if expected is None:
        return []
    return [ParsedError(
        message=f'Field "{field_name}" has the wrong format',
        field=field_name,
        reason=f'Field "{field_name}" expects {expected}, got {type(value).__name__}',
        suggestion="Check that the value is correctly formatted",
    )]


def validate_form_data(form_data: Dict[str, Any], required_fields: Iterable[str]) -> Tuple[bool, List[ParsedError]]:
    """Validate a buffer before submission.

    Returns:
        (valid, errors) where errors holds one ParsedError per failing field.
    """
    errors: List[ParsedError] = []
    for field_name in required_fields:
        errors.extend(check_required(field_name, form_data.get(field_name)))
    for field_name, value in form_data.items():
        errors.extend(check_shape(field_name, value))
    return not errors, errors
