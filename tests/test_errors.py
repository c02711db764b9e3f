"""Tests for error parsing and local field validation."""
from diligencestate import (
    CollaboratorError, LocalValidationError, ParsedError, TransportError, is_empty_value,
    parse_error_payload, validate_form_data,
)
from diligencestate.errors import guard_error


def structured(message, code='BAD_USER_INPUT', path=None):
    entry = {'message': message, 'extensions': {'code': code}}
    if path is not None:
        entry['path'] = path
    return {'errors': [entry]}


class TestParseErrorPayload:

    def test_variable_enum_message(self):
        parsed = parse_error_payload(structured(
            'Variable "$input" got invalid value "bogus" at "input.redundancy"; '
            'Value "bogus" does not exist in "RedundancyLevel" enum.'
        ))
        assert parsed.field == 'redundancy'
        assert 'bogus' in parsed.reason
        assert parsed.suggestion

    def test_empty_enum_value(self):
        parsed = parse_error_payload(structured(
            'Variable "$input" got invalid value "" at "input.env_type"; '
            'Value "" does not exist in "EnvironmentType" enum.'
        ))
        assert parsed.field == 'env_type'
        assert 'cannot be empty' in parsed.reason

    def test_short_enum_message_uses_path(self):
        parsed = parse_error_payload(structured(
            'Value "Huge" does not exist in "EditorSize" enum.', path=['updateEditor', 'size'],
        ))
        assert parsed.field == 'size'

    def test_cast_error(self):
        parsed = parse_error_payload(structured(
            'Cast to Number failed for value "abc" (type string) at path "hosting_monthly"'
        ))
        assert parsed.field == 'hosting_monthly'
        assert 'expects a Number' in parsed.reason

    def test_model_validation_details(self):
        parsed = parse_error_payload(structured(
            'Solution validation failed: name: Path `name` is required., main_use_case: required'
        ))
        assert parsed.reason == 'Validation error for Solution'
        assert parsed.field == 'name'
        assert len(parsed.details) == 2

    def test_permission_codes(self):
        for code in ('UNAUTHENTICATED', 'FORBIDDEN'):
            parsed = parse_error_payload(structured('Not allowed', code=code))
            assert parsed.reason == 'You do not have the required permissions'

    def test_internal_server_error(self):
        parsed = parse_error_payload(structured('db down', code='INTERNAL_SERVER_ERROR'))
        assert parsed.message == 'db down'
        assert 'internal server error' in parsed.reason

    def test_exception_with_payload(self):
        error = CollaboratorError("rejected", payload=structured('Forbidden', code='FORBIDDEN'))
        assert parse_error_payload(error).reason == 'You do not have the required permissions'

    def test_plain_exception(self):
        parsed = parse_error_payload(RuntimeError("connection reset"))
        assert parsed.message == "connection reset"
        assert parsed.field is None

    def test_plain_enum_message(self):
        parsed = parse_error_payload(ValueError('Value "x" does not exist in "EnvironmentType" enum'))
        assert parsed.field == 'environment'

    def test_parsed_error_and_transport_error_pass_through(self):
        parsed = ParsedError(message="already parsed")
        assert parse_error_payload(parsed) is parsed
        assert parse_error_payload(TransportError(parsed)) is parsed

    def test_empty_payload_is_generic(self):
        assert parse_error_payload({}).message == "An unexpected error occurred"


class TestErrorTypes:

    def test_format_contains_all_parts(self):
        text = ParsedError(
            message="Validation error", field="name", reason="empty", suggestion="fill it", details=["a: b"],
        ).format()
        for part in ("Validation error", "Reason: empty", "Field: name", "Suggestion: fill it", "a: b"):
            assert part in text

    def test_local_validation_error_fields(self):
        error = LocalValidationError([ParsedError("x", field="name"), ParsedError("y", field="main_use_case")])
        assert error.fields == ['name', 'main_use_case']

    def test_guard_error_is_transport_error(self):
        error = guard_error("No child selected", suggestion="Select a child first")
        assert isinstance(error, TransportError)
        assert error.error.suggestion == "Select a child first"


class TestFieldValidation:

    def test_empty_values(self):
        for value in (None, '', '  ', 'TBD', 'N/A', 'MANQUANT', '#ERROR!', [], ['', None], {}, float('nan')):
            assert is_empty_value(value), value

    def test_populated_values(self):
        for value in ('SaaS', 0, False, ['python'], {'a': 1}, 12.5):
            assert not is_empty_value(value), value

    def test_required_fields(self):
        valid, errors = validate_form_data({'name': '-', 'main_use_case': 'CRM'}, ('name', 'main_use_case'))
        assert not valid
        assert [e.field for e in errors] == ['name']

    def test_missing_required_field(self):
        valid, errors = validate_form_data({}, ('env_type',))
        assert not valid
        assert errors[0].field == 'env_type'

    def test_shape_checks(self):
        valid, errors = validate_form_data(
            {'tech_stack': 'python', 'centralized_monitoring': 'yes', 'hosting_monthly': '12'}, (),
        )
        assert not valid
        assert {e.field for e in errors} == {'tech_stack', 'centralized_monitoring', 'hosting_monthly'}

    def test_valid_form(self):
        valid, errors = validate_form_data(
            {'name': 'Billing', 'main_use_case': 'Invoicing', 'tech_stack': [], 'hosting_monthly': 0},
            ('name', 'main_use_case'),
        )
        assert valid
        assert errors == []
