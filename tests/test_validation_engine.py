"""
Tests for the Validator engine

Covers the optional-field short-circuit, rule ordering, sanitizing,
named-list resolution and configuration failures.
"""
import pytest

from field_validation import (
    InvalidRuleParameterError,
    RuleNotDefinedError,
    UnknownNamedListError,
    UploadedFile,
    ValidationResult,
    Validator,
    make_context,
)


@pytest.fixture
def validator():
    """Context-less validator."""
    return Validator()


@pytest.fixture
def registration_context():
    """Context mirroring a typical sign-up form."""
    return make_context(
        "registration_form",
        {
            "name": "string|max:30|min:4|required|in:valid_names",
            "password": "string|max:32|min:8|required",
            "age": "integer|required|min:18|max:80",
            "email": "email|required",
            "file": "file|required|mime:valid_mime_types",
        },
        {
            "valid_names": ["Paul", "Larry", "Scott", "Samuel"],
            "valid_mime_types": ["image/jpeg", "image/png"],
        },
    )


@pytest.fixture
def upload(tmp_path):
    """A real temp file standing in for an uploaded photo."""
    tmp_file = tmp_path / "upload_tmp"
    tmp_file.write_bytes(b"\x89PNG")
    return UploadedFile(name="photo.png", type="image/png", tmp_name=str(tmp_file), uploaded=True)


class TestRequiredAndOptional:
    """Test the required rule and the optional-field short-circuit."""

    def test_required_field_empty(self, validator):
        """Test that an empty required field fails with one message."""
        result = validator.validate({"name": ""}, {"name": "required"})
        assert result.passed is False
        assert result.errors == {"name": ["The name field is required."]}
        assert "name" in validator.get_errors()

    def test_optional_field_empty_is_skipped(self, validator):
        """Test that other rules are ignored for an empty optional field."""
        result = validator.validate({"name": ""}, {"name": "string|max:50"})
        assert result.passed is True
        assert "name" not in result.errors

    def test_missing_optional_field_is_skipped(self, validator):
        """Test that an absent key is not an error by itself."""
        result = validator.validate({}, {"nickname": "string|min:3"})
        assert result.passed

    def test_missing_required_field(self, validator):
        """Test that an absent required key fails."""
        result = validator.validate({}, {"name": "required|string"})
        assert result.errors["name"][0] == "The name field is required."

    def test_zero_counts_as_empty(self, validator):
        """Test that numeric zero skips an optional field."""
        result = validator.validate({"count": 0, "flag": "0"}, {"count": "integer|min:5", "flag": "min:5"})
        assert result.passed

    def test_required_position_does_not_matter(self, validator):
        """Test that required anywhere in the rule spec disables the short-circuit."""
        result = validator.validate({"age": ""}, {"age": "integer|min:18|required"})
        assert "The age field is required." in result.errors["age"]

    def test_required_in_parameter_does_not_count(self, validator):
        """Test that only a rule named required disables the short-circuit."""
        ctx = make_context("c", {}, {"required": ["x"]})
        result = Validator(ctx).validate({"v": ""}, {"v": "in:required"})
        assert result.passed


class TestMinMaxBranches:
    """Test numeric versus length branches through the engine."""

    def test_age_in_range(self, validator):
        """Test that 19 passes min:18 and max:80."""
        result = validator.validate({"age": 19}, {"age": "required|min:18|max:80"})
        assert result.passed

    def test_min_length_fails(self, validator):
        """Test that "Dav" is too short for min:4."""
        result = validator.validate({"name": "Dav"}, {"name": "min:4"})
        assert result.errors == {"name": ["The name field must be minimum 4 characters."]}

    def test_min_magnitude_fails(self, validator):
        """Test that 5 is below min:18."""
        result = validator.validate({"age": 5}, {"age": "min:18"})
        assert result.errors == {"age": ["The age field must be minimum 18."]}

    def test_numeric_string_compared_as_magnitude(self, validator):
        """Test that "25" is a number, not a two character string."""
        result = validator.validate({"age": "25"}, {"age": "max:3"})
        assert result.errors == {"age": ["The age field must not exceed 3."]}

    def test_overflowing_exponent_is_reported_not_raised(self, validator):
        """Test that "1e999" completes the run and is checked as text."""
        result = validator.validate({"age": "1e999"}, {"age": "integer|required|min:18|max:80"})
        assert result.errors == {
            "age": ["The age field must be an integer.", "The age field must be minimum 18 characters."]
        }

    def test_min_max_mixed_data(self, validator):
        """Test a valid age and name together."""
        data = {"age": 19, "name": "David"}
        rules = {"age": "required|min:18|max:80", "name": "required|min:4"}
        validator.validate(data, rules)
        assert "name" not in validator.get_errors()


class TestOrderingAndAccumulation:
    """Test that all rules run, in order."""

    def test_multiple_failures_in_rule_order(self, validator):
        """Test that each failing rule adds its own message, in written order."""
        result = validator.validate({"name": "ab"}, {"name": "integer|min:4|email"})
        assert result.errors["name"] == [
            "The name field must be an integer.",
            "The name field must be minimum 4 characters.",
            "The name field must be a valid email address.",
        ]

    def test_order_follows_rule_spec(self, validator):
        """Test that reordering the rule spec reorders the messages."""
        result = validator.validate({"name": "ab"}, {"name": "email|min:4|integer"})
        assert result.errors["name"][0] == "The name field must be a valid email address."
        assert result.errors["name"][-1] == "The name field must be an integer."

    def test_required_failure_does_not_stop_later_rules(self, validator):
        """Test that later rules run after required fails."""
        result = validator.validate({"name": ""}, {"name": "required|string"})
        assert result.errors["name"] == ["The name field is required."]
        result = validator.validate({"n": ""}, {"n": "required|integer"})
        assert result.errors["n"] == ["The n field is required.", "The n field must be an integer."]

    def test_fields_processed_independently(self, validator):
        """Test that one failing field does not affect another."""
        result = validator.validate(
            {"email": "bad", "age": 30},
            {"email": "email|required", "age": "integer|min:18"},
        )
        assert list(result.errors) == ["email"]

    def test_sequence_rule_spec(self, validator):
        """Test that a pre-split rule spec behaves like its string form."""
        a = validator.validate({"age": 5}, {"age": ["integer", "required", "min:18"]})
        b = validator.validate({"age": 5}, {"age": "integer|required|min:18"})
        assert a.errors == b.errors


class TestRunIsolation:
    """Test that runs do not leak state."""

    def test_repeat_validation_is_idempotent(self, registration_context, upload):
        """Test that the same input yields the same result twice."""
        v = Validator(registration_context, upload_checker=lambda u: True)
        data = {"name": "Bob", "age": "17", "email": "x", "file": upload}
        first = v.validate(data)
        second = v.validate(data)
        assert first.passed == second.passed
        assert first.errors == second.errors

    def test_errors_reset_between_runs(self, validator):
        """Test that a passing run clears errors from a failing one."""
        failed = validator.validate({"name": ""}, {"name": "required"})
        passed = validator.validate({"name": "Paul"}, {"name": "required"})
        assert not failed
        assert passed
        assert validator.get_errors() == {}
        assert failed.errors == {"name": ["The name field is required."]}

    def test_get_errors_before_first_run(self, validator):
        """Test that a new validator has no errors."""
        assert validator.get_errors() == {}

    def test_result_to_dict(self, validator):
        """Test the serializable result form."""
        result = validator.validate({"name": ""}, {"name": "required"})
        assert result.to_dict() == {"valid": False, "errors": {"name": ["The name field is required."]}}
        assert ValidationResult().to_dict() == {"valid": True, "errors": {}}


class TestNamedLists:
    """Test in rule indirection through the context."""

    def test_in_uses_live_list(self):
        """Test that changing the list between runs changes the outcome."""
        ctx = make_context("c", {"name": "in:valid_names"}, {"valid_names": ["Paul"]})
        v = Validator(ctx)
        assert not v.validate({"name": "Larry"})

        ctx.named_lists["valid_names"].append("Larry")
        assert v.validate({"name": "Larry"})

    def test_in_list_replaced(self):
        """Test that replacing the list object is also seen."""
        ctx = make_context("c", {"name": "in:valid_names"}, {"valid_names": ["Paul"]})
        v = Validator(ctx)
        assert v.validate({"name": "Paul"})
        ctx.named_lists["valid_names"] = ["Scott"]
        assert not v.validate({"name": "Paul"})

    def test_param_is_not_a_literal(self):
        """Test that the parameter names a list rather than being one."""
        ctx = make_context("c", {"name": "in:Paul"}, {"Paul": ["Larry"]})
        assert not Validator(ctx).validate({"name": "Paul"})

    def test_rules_argument_overrides_context_rules(self):
        """Test that explicit rules still resolve lists on the context."""
        ctx = make_context("c", {"other": "required"}, {"valid_names": ["Paul"]})
        result = Validator(ctx).validate({"name": "Paul"}, {"name": "in:valid_names"})
        assert result.passed


class TestSanitizing:
    """Test escaping before dispatch."""

    def test_markup_is_escaped_before_rules(self):
        """Test that rules see the escaped value."""
        seen = []
        ctx = make_context("c", {"comment": "in:allowed"}, {"allowed": []})
        v = Validator(ctx, sanitizer=lambda s: seen.append(s) or s.upper())
        v.validate({"comment": "<b>hi</b>"})
        assert seen == ["<b>hi</b>"]

    def test_default_escaping_changes_length(self, validator):
        """Test that escaped entities count toward length limits."""
        result = validator.validate({"q": "a&b"}, {"q": "max:3"})
        assert result.errors == {"q": ["The q field must not exceed 3 characters."]}

    def test_quotes_escaped(self):
        """Test that list membership is checked against the escaped value."""
        raw = make_context("c", {"name": "in:names"}, {"names": ["O'Brien"]})
        escaped = make_context("c", {"name": "in:names"}, {"names": ["O&#x27;Brien"]})
        assert not Validator(raw).validate({"name": "O'Brien"})
        assert Validator(escaped).validate({"name": "O'Brien"})

    def test_numbers_not_stringified(self, validator):
        """Test that an int stays an int and fails the string rule."""
        result = validator.validate({"age": 19}, {"age": "string"})
        assert result.errors == {"age": ["The age field must be a string."]}

    def test_upload_filename_escaped(self, tmp_path):
        """Test that only the filename of an upload is escaped."""
        seen = []

        def checker(upload):
            seen.append(upload)
            return True

        v = Validator(upload_checker=checker)
        record = UploadedFile(name="<x>.png", type="image/png", tmp_name=str(tmp_path / "t"))
        v.validate({"file": record}, {"file": "file"})
        assert seen[0].name == "&lt;x&gt;.png"
        assert seen[0].tmp_name == record.tmp_name


class TestFiles:
    """Test file and mime rules through the engine."""

    def test_valid_upload(self, registration_context, upload):
        """Test a png named .png passes file and mime."""
        result = Validator(registration_context).validate({"file": upload}, {"file": "file|required|mime:valid_mime_types"})
        assert result.passed

    def test_extension_mismatch(self, registration_context, upload):
        """Test an allowed mime type with a mismatched extension."""
        bad = UploadedFile(name="photo.jpg", type="image/png", tmp_name=upload.tmp_name, uploaded=True)
        result = Validator(registration_context).validate({"file": bad}, {"file": "file|mime:valid_mime_types"})
        assert result.errors == {"file": ["Invalid File Type"]}

    def test_upload_mapping_is_coerced(self, registration_context, upload):
        """Test that a form-upload style dict is accepted."""
        data = {"file": {"name": "photo.png", "type": "image/png", "tmp_name": upload.tmp_name, "uploaded": True}}
        result = Validator(registration_context).validate(data, {"file": "file|mime:valid_mime_types"})
        assert result.passed

    def test_unflagged_mapping_for_local_file(self, registration_context, tmp_path):
        """Test that an upload dict naming an existing server file is not an upload."""
        local = tmp_path / "passwd.png"
        local.write_bytes(b"\x89PNG")
        data = {"file": {"name": "passwd.png", "type": "image/png", "tmp_name": str(local)}}
        result = Validator(registration_context).validate(data, {"file": "file|mime:valid_mime_types"})
        assert result.errors == {"file": ["Missing file field."]}

    def test_missing_temp_file(self, registration_context, tmp_path):
        """Test that a record with no temp file fails the file rule."""
        record = UploadedFile(name="photo.png", type="image/png", tmp_name=str(tmp_path / "missing"))
        result = Validator(registration_context).validate({"file": record}, {"file": "file|mime:valid_mime_types"})
        assert result.errors == {"file": ["Missing file field."]}


class TestConfigurationFailures:
    """Test that broken rule tables abort the run."""

    def test_unknown_rule_raises(self, validator):
        """Test that an unknown rule name raises instead of recording an error."""
        with pytest.raises(RuleNotDefinedError):
            validator.validate({"x": "v"}, {"x": "bogus_rule"})

    def test_unknown_rule_on_empty_optional_field(self, validator):
        """Test that a skipped field never reaches dispatch."""
        assert validator.validate({"x": ""}, {"x": "bogus_rule"})

    def test_trailing_pipe_raises(self, validator):
        """Test that an empty rule name is not defined."""
        with pytest.raises(RuleNotDefinedError):
            validator.validate({"x": "v"}, {"x": "required|"})

    def test_unknown_rule_aborts_remaining_fields(self, validator):
        """Test that later fields are not processed after the failure."""
        with pytest.raises(RuleNotDefinedError):
            validator.validate({"a": "v", "b": ""}, {"a": "nope", "b": "required"})
        assert "b" not in validator.get_errors()

    def test_missing_list(self):
        """Test that an undefined named list raises."""
        with pytest.raises(UnknownNamedListError):
            Validator(make_context("c", {})).validate({"n": "Paul"}, {"n": "in:valid_names"})

    def test_missing_max_param(self, validator):
        """Test that max without a limit raises."""
        with pytest.raises(InvalidRuleParameterError):
            validator.validate({"n": "Paul"}, {"n": "max"})

    def test_no_rules_and_no_context(self, validator):
        """Test that validate needs rules from somewhere."""
        with pytest.raises(ValueError):
            validator.validate({"n": "Paul"})


class TestRegistrationForm:
    """End-to-end checks against a full context."""

    def test_valid_submission(self, registration_context, upload):
        """Test a submission that passes every rule."""
        data = {
            "name": "Paul",
            "password": "s3cretpass",
            "age": "34",
            "email": "paul@mailbox.org",
            "file": upload,
        }
        result = Validator(registration_context).validate(data)
        assert result.passed, result.errors

    def test_invalid_submission(self, registration_context, upload):
        """Test a submission with several bad fields."""
        data = {
            "name": "Bob",
            "password": "short",
            "age": "17",
            "email": "bob-at-mailbox",
        }
        result = Validator(registration_context).validate(data)
        assert result.errors["name"] == [
            "The name field must be minimum 4 characters.",
            "The name field is invalid.",
        ]
        assert result.errors["password"] == ["The password field must be minimum 8 characters."]
        assert result.errors["age"] == ["The age field must be minimum 18."]
        assert result.errors["email"] == ["The email field must be a valid email address."]
        assert result.errors["file"] == [
            "Missing file field.",
            "The file field is required.",
            "Invalid File Type",
        ]
