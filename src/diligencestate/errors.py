"""
Error taxonomy of the engine and the collaborator error parser.

LocalValidationError  - buffer failed a presence/shape check, no call was made
TransportError        - collaborator call failed, or a guard refused to make it
ReconciliationInconsistency - selected id missing from fresh data (internal only)

The first two are returned inside a MutationResult and never raised past the
MutationOrchestrator. The third never leaves the TierSelectionController.
"""
import re
import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

GENERIC_MESSAGE = "An unexpected error occurred"

_VARIABLE_ENUM_RE = re.compile(
    r'got\s+invalid\s+value\s+"([^"]*)"\s+at\s+"([^"]+)";\s*Value\s+"([^"]*)"\s+does\s+not\s+exist\s+in\s+"([^"]+)"\s+enum',
    re.IGNORECASE,
)
_ENUM_RE = re.compile(r'Value\s+"([^"]*)"\s+does not exist in\s+"([^"]+)"\s+enum')
_CAST_RE = re.compile(r'Cast to (\w+) failed for value "([^"]+)" \(type (\w+)\) at path "([^"]+)"')
_VALIDATION_RE = re.compile(r'(\w+) validation failed: (.+)')
_VALIDATION_DETAIL_RE = re.compile(r'(\w+): (.+?)(?:,|$)')


@dataclass
class ParsedError:
    """Structured, user-facing error: which field, why, and what to do."""
    message: str
    field: Optional[str] = None
    reason: Optional[str] = None
    suggestion: Optional[str] = None
    details: List[str] = dataclasses.field(default_factory=list)

    def format(self) -> str:
        """Render for display."""
        text = self.message
        if self.reason:
            text += f"\n\nReason: {self.reason}"
        if self.field:
            text += f"\n\nField: {self.field}"
        if self.suggestion:
            text += f"\n\nSuggestion: {self.suggestion}"
        if self.details:
            text += "\n\nDetails:\n" + "\n".join(self.details)
        return text


class MutationError(Exception):
    """Base class for errors produced by the MutationOrchestrator."""


class LocalValidationError(MutationError):
    """Buffer failed local validation. Always recoverable."""

    def __init__(self, errors: List[ParsedError]):
        self.errors = list(errors)
        super().__init__("; ".join(e.reason or e.message for e in self.errors))

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors if e.field]


class TransportError(MutationError):
    """Collaborator call failed, or the orchestrator refused to issue it."""

    def __init__(self, error: ParsedError):
        self.error = error
        super().__init__(error.message)


class ReconciliationInconsistency(Exception):
    """A selected id is absent from the visible data it must belong to."""

    def __init__(self, tier, entity_id: str):
        self.tier = tier
        self.entity_id = entity_id
        super().__init__(f"{tier.value} {entity_id!r} is not in the visible list")


class CollaboratorError(Exception):
    """Exception a collaborator may raise to hand back its error payload."""

    def __init__(self, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.payload = payload or {}


def guard_error(message: str, suggestion: Optional[str] = None) -> TransportError:
    """TransportError for a call the orchestrator refused to make."""
    return TransportError(ParsedError(message=message, reason=message, suggestion=suggestion))


def _enum_field_from_name(enum_name: str) -> str:
    return enum_name.replace('Type', '').replace('Enum', '').lower()


def _enum_error(field_name: str, invalid_value: str) -> ParsedError:
    parsed = ParsedError(message=f'Validation error for field "{field_name}"', field=field_name)
    if invalid_value in ('', '""'):
        parsed.reason = f'Field "{field_name}" cannot be empty; a valid value must be selected'
        parsed.suggestion = f'Select a valid value from the list for field "{field_name}"'
    else:
        parsed.reason = f'Value "{invalid_value}" is not valid for field "{field_name}"'
        parsed.suggestion = "Select a valid value from the proposed list"
    return parsed


def _parse_structured(entry: Dict[str, Any]) -> ParsedError:
    message = entry.get('message') or ''
    extensions = entry.get('extensions') or {}
    path = entry.get('path') or []
    code = extensions.get('code')

    field_name = path[-1] if path and isinstance(path[-1], str) else None
    parsed = ParsedError(message=message or GENERIC_MESSAGE, field=field_name)

    is_validation = (
        code == 'BAD_USER_INPUT'
        or 'does not exist in' in message
        or 'invalid value' in message
    )
    if is_validation:
        match = _VARIABLE_ENUM_RE.search(message)
        if match:
            invalid_value = match.group(1) or match.group(3) or ''
            field_path = match.group(2)
            return _enum_error(field_path.split('.')[-1] or field_path, invalid_value)

        match = _ENUM_RE.search(message)
        if match:
            return _enum_error(field_name or _enum_field_from_name(match.group(2)), match.group(1))

        match = _CAST_RE.search(message)
        if match:
            expected, value, actual, field_path = match.groups()
            parsed.field = field_path
            parsed.reason = f'Field "{field_path}" expects a {expected} but received "{value}" ({actual})'
            parsed.suggestion = "Check that the value is correctly formatted"

        match = _VALIDATION_RE.search(message)
        if match:
            entity_name, detail_text = match.groups()
            parsed.reason = f"Validation error for {entity_name}"
            for detail in _VALIDATION_DETAIL_RE.finditer(detail_text):
                parsed.details.append(f"{detail.group(1)}: {detail.group(2).strip()}")
                if not parsed.field:
                    parsed.field = detail.group(1)

    if code in ('UNAUTHENTICATED', 'FORBIDDEN'):
        parsed.reason = "You do not have the required permissions"
        parsed.suggestion = "Contact an administrator if you think this is a mistake"
    elif code == 'INTERNAL_SERVER_ERROR':
        parsed.reason = "An internal server error occurred"
        parsed.suggestion = "Retry in a few moments; contact support if the problem persists"

    return parsed


def parse_error_payload(error: Any) -> ParsedError:
    """Turn whatever a collaborator raised into a ParsedError.

    Accepts a ParsedError (returned as is), an exception carrying a ``payload``
    dict with an ``errors`` list, a bare payload dict, or any exception.
    """
    if isinstance(error, ParsedError):
        return error
    if isinstance(error, TransportError):
        return error.error

    payload = error if isinstance(error, dict) else getattr(error, 'payload', None)
    if isinstance(payload, dict):
        entries = payload.get('errors') or payload.get('graphQLErrors') or []
        if entries:
            return _parse_structured(entries[0])

    message = str(error) if not isinstance(error, dict) else (error.get('message') or '')
    if message:
        match = _ENUM_RE.search(message)
        if match:
            return _enum_error(_enum_field_from_name(match.group(2)), match.group(1))
        return ParsedError(message=message, reason="An error occurred during the operation")

    return ParsedError(message=GENERIC_MESSAGE)
