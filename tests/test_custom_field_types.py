"""
Custom field variants: parsing definitions, per-type validation and the
required-field emptiness rules.
"""

import pytest

from qaboard.core.exceptions import ValidationError
from qaboard.services.custom_field_types import (
    CheckboxField,
    DateField,
    MultiSelectField,
    NumberField,
    SelectField,
    TextField,
    missing_required,
    parse_field_definition,
    parse_field_definitions,
    validate_field_values,
)


class TestParsing:
    def test_defaults_to_text(self):
        field = parse_field_definition({"key": "url"})
        assert isinstance(field, TextField)
        assert field.label == "url"
        assert field.visible and field.editable and not field.required

    def test_select_with_string_options(self):
        field = parse_field_definition({"key": "env", "type": "select", "options": ["dev", "prod"]})
        assert isinstance(field, SelectField)
        assert field.options == ("dev", "prod")

    def test_select_with_value_label_options(self):
        field = parse_field_definition({
            "key": "env", "type": "multiselect",
            "options": [{"value": "dev", "label": "Desarrollo"}, {"value": "prod", "label": "Producción"}],
        })
        assert isinstance(field, MultiSelectField)
        assert field.options == ("dev", "prod")
        assert field.to_dict()["options"] == ["dev", "prod"]

    def test_select_needs_options(self):
        with pytest.raises(ValidationError):
            parse_field_definition({"key": "env", "type": "select", "options": []})

    def test_unknown_type(self):
        with pytest.raises(ValidationError) as exc:
            parse_field_definition({"key": "x", "type": "color"})
        assert "x" in exc.value.details

    def test_missing_key(self):
        with pytest.raises(ValidationError):
            parse_field_definition({"label": "No key"})

    @pytest.mark.parametrize("raw", [{"key": 5}, {"key": "   "}, "url", {"key": "x", "type": ["text"]}])
    def test_malformed_definitions(self, raw):
        with pytest.raises(ValidationError):
            parse_field_definition(raw)

    def test_definitions_must_be_a_list(self):
        with pytest.raises(ValidationError):
            parse_field_definitions({"key": "url"})

    @pytest.mark.parametrize("raw", [
        {"key": "env", "type": "select", "options": ["dev", "prod"], "default_value": "staging"},
        {"key": "hours", "type": "number", "default_value": "lots"},
        {"key": "done", "type": "checkbox", "default_value": "yes"},
    ])
    def test_default_value_must_satisfy_field(self, raw):
        with pytest.raises(ValidationError) as exc:
            parse_field_definition(raw)
        assert raw["key"] in exc.value.details

    def test_valid_default_value_kept(self):
        field = parse_field_definition({"key": "env", "type": "select", "options": ["dev"], "default_value": "dev"})
        assert field.default_value == "dev"


class TestValidation:
    def test_number_accepts_numeric_strings(self):
        field = NumberField(key="hours", label="Horas")
        assert field.validate("3") == 3
        assert field.validate("2.5") == 2.5
        assert field.validate(4) == 4

    @pytest.mark.parametrize("value", ["abc", True])
    def test_number_rejects(self, value):
        with pytest.raises(ValueError):
            NumberField(key="hours", label="Horas").validate(value)

    def test_date_normalises_to_iso(self):
        field = DateField(key="go_live", label="Go live")
        assert field.validate("31.12.2026") == "2026-12-31"
        with pytest.raises(ValueError):
            field.validate("tomorrow")

    def test_checkbox_requires_bool(self):
        field = CheckboxField(key="ok", label="OK")
        assert field.validate(True) is True
        with pytest.raises(ValueError):
            field.validate("yes")

    def test_select_rejects_unknown_option(self):
        field = SelectField(key="env", label="Env", options=("dev", "prod"))
        assert field.validate("dev") == "dev"
        with pytest.raises(ValueError):
            field.validate("qa")

    def test_multiselect_subset(self):
        field = MultiSelectField(key="envs", label="Envs", options=("dev", "prod"))
        assert field.validate(["prod"]) == ["prod"]
        with pytest.raises(ValueError):
            field.validate(["prod", "staging"])

    def test_values_report_every_problem(self):
        defs = parse_field_definitions([
            {"key": "hours", "type": "number"},
            {"key": "env", "type": "select", "options": ["dev"]},
        ])
        with pytest.raises(ValidationError) as exc:
            validate_field_values(defs, {"hours": "many", "env": "prod", "ghost": 1})
        assert set(exc.value.details) == {"hours", "env", "ghost"}


class TestRequired:
    def test_empty_values(self):
        defs = parse_field_definitions([
            {"key": "url", "label": "URL", "type": "text", "required": True},
            {"key": "envs", "type": "multiselect", "options": ["dev"], "required": True},
            {"key": "signed", "type": "checkbox", "required": True},
            {"key": "hours", "type": "number", "required": True},
            {"key": "notes", "type": "textarea"},
        ])
        missing = missing_required(defs, {"url": "  ", "envs": [], "signed": False, "hours": 0})
        # Zero is a value; an unticked required checkbox is not
        assert [f.key for f in missing] == ["url", "envs", "signed"]

    def test_filled_values(self):
        defs = parse_field_definitions([{"key": "url", "required": True}])
        assert missing_required(defs, {"url": "https://example.com"}) == []
