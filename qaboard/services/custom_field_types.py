"""
Custom field variants for the task board.

Each field type is its own class with one ``validate`` implementation, so
type-specific rules live in one place instead of being switched on at every
call site. Definitions are stored as plain dicts on TaskConfiguration and
parsed into these variants when needed.

Usage:
    from qaboard.services.custom_field_types import parse_field_definition

    field = parse_field_definition({"key": "url", "label": "URL", "type": "text", "required": True})
    field.is_empty(task.custom_fields.get("url"))
    value = field.validate("https://example.com")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from qaboard.core.exceptions import ValidationError
from qaboard.utils.helpers import parse_date_input


@dataclass(frozen=True)
class FieldDefinition:
    """Base variant: key, label and the flags every field type shares."""
    key: str
    label: str
    required: bool = False
    visible: bool = True
    editable: bool = True
    default_value: Any = None

    type_name: ClassVar[str] = ""

    def is_empty(self, value) -> bool:
        """True when ``value`` does not satisfy a required field."""
        if value is None:
            return True
        if isinstance(value, str):
            return not value.strip()
        if isinstance(value, (list, tuple, dict)):
            return len(value) == 0
        return False

    def validate(self, value):
        """Return the normalised value or raise ValueError."""
        return value

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "label": self.label,
            "type": self.type_name,
            "required": self.required,
            "visible": self.visible,
            "editable": self.editable,
            "default_value": self.default_value,
        }


@dataclass(frozen=True)
class TextField(FieldDefinition):
    type_name: ClassVar[str] = "text"

    def validate(self, value):
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("must be text")
        return value


@dataclass(frozen=True)
class TextareaField(TextField):
    type_name: ClassVar[str] = "textarea"


@dataclass(frozen=True)
class NumberField(FieldDefinition):
    type_name: ClassVar[str] = "number"

    def validate(self, value):
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            raise ValueError("must be a number")
        if isinstance(value, (int, float)):
            return value
        try:
            num = float(str(value))
        except ValueError as exc:
            raise ValueError("must be a number") from exc
        return int(num) if num.is_integer() else num


@dataclass(frozen=True)
class DateField(FieldDefinition):
    type_name: ClassVar[str] = "date"

    def validate(self, value):
        if value is None or value == "":
            return None
        try:
            return parse_date_input(value).isoformat()
        except ValueError as exc:
            raise ValueError("must be a date (YYYY-MM-DD)") from exc


@dataclass(frozen=True)
class CheckboxField(FieldDefinition):
    type_name: ClassVar[str] = "checkbox"

    def is_empty(self, value) -> bool:
        # A required checkbox has to be ticked
        return not value

    def validate(self, value):
        if value is None:
            return False
        if not isinstance(value, bool):
            raise ValueError("must be true or false")
        return value


@dataclass(frozen=True)
class FileField(FieldDefinition):
    """Reference to an uploaded document (URL or storage key)."""
    type_name: ClassVar[str] = "file"

    def validate(self, value):
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("must be a file URL")
        return value


@dataclass(frozen=True)
class SelectField(FieldDefinition):
    options: tuple[str, ...] = field(default_factory=tuple)

    type_name: ClassVar[str] = "select"

    def validate(self, value):
        if value is None or value == "":
            return None
        if value not in self.options:
            raise ValueError(f"must be one of: {', '.join(self.options)}")
        return value

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["options"] = list(self.options)
        return d


@dataclass(frozen=True)
class MultiSelectField(SelectField):
    type_name: ClassVar[str] = "multiselect"

    def validate(self, value):
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            raise ValueError("must be a list of options")
        unknown = [v for v in value if v not in self.options]
        if unknown:
            raise ValueError(f"unknown option(s): {', '.join(map(str, unknown))}")
        return list(value)


FIELD_VARIANTS: dict[str, type[FieldDefinition]] = {
    cls.type_name: cls
    for cls in (TextField, TextareaField, NumberField, DateField,
                CheckboxField, SelectField, MultiSelectField, FileField)
}


def _option_values(raw_options) -> tuple[str, ...]:
    if not isinstance(raw_options, (list, tuple)):
        return ()
    values = []
    for opt in raw_options:
        if isinstance(opt, dict):
            values.append(str(opt.get("value", opt.get("label", ""))))
        else:
            values.append(str(opt))
    return tuple(v for v in values if v)


def parse_field_definition(raw: dict) -> FieldDefinition:
    """Build the variant for one stored field definition.

    Raises:
        ValidationError: not an object, missing key, unknown type, a select
            without options, or a default value the field itself rejects.
    """
    if not isinstance(raw, dict):
        raise ValidationError("Each custom field must be an object", details={"custom_fields": "invalid entry"})
    key = raw.get("key")
    key = key.strip() if isinstance(key, str) else ""
    if not key:
        raise ValidationError("Custom field key is required", details={"custom_fields": "missing key"})
    type_name = raw.get("type", "text")
    variant = FIELD_VARIANTS.get(type_name) if isinstance(type_name, str) else None
    if variant is None:
        raise ValidationError(
            f"Unknown custom field type '{type_name}'",
            details={key: f"type must be one of {', '.join(FIELD_VARIANTS)}"},
        )
    common = dict(
        key=key,
        label=raw.get("label") or key,
        required=bool(raw.get("required", False)),
        visible=bool(raw.get("visible", True)),
        editable=bool(raw.get("editable", True)),
        default_value=raw.get("default_value"),
    )
    if issubclass(variant, SelectField):
        options = _option_values(raw.get("options"))
        if not options:
            raise ValidationError(
                f"Field '{key}' needs at least one option",
                details={key: "options required for select fields"},
            )
        definition = variant(options=options, **common)
    else:
        definition = variant(**common)

    if definition.default_value is not None:
        try:
            definition.validate(definition.default_value)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid default value for '{key}': {exc}",
                details={key: f"default_value {exc}"},
            ) from exc
    return definition


def parse_field_definitions(raw_fields) -> list[FieldDefinition]:
    if raw_fields and not isinstance(raw_fields, list):
        raise ValidationError("Custom fields must be a list", details={"custom_fields": "invalid"})
    return [parse_field_definition(f) for f in raw_fields or []]


def validate_field_values(definitions: list[FieldDefinition], values: dict) -> dict:
    """Validate a ``custom_fields`` mapping against the board's definitions.

    Returns the normalised mapping. Unknown keys and ill-typed values are
    reported together in one ValidationError.
    """
    if values is not None and not isinstance(values, dict):
        raise ValidationError("Custom field values must be an object", details={"custom_fields": "invalid"})
    by_key = {d.key: d for d in definitions}
    cleaned = {}
    errors = {}
    for key, value in (values or {}).items():
        definition = by_key.get(key)
        if definition is None:
            errors[key] = "unknown field"
            continue
        try:
            cleaned[key] = definition.validate(value)
        except ValueError as exc:
            errors[key] = str(exc)
    if errors:
        raise ValidationError("Invalid custom field values", details=errors)
    return cleaned


def missing_required(definitions: list[FieldDefinition], values: dict) -> list[FieldDefinition]:
    """Required fields whose value in ``values`` is still empty."""
    values = values or {}
    return [d for d in definitions if d.required and d.is_empty(values.get(d.key))]
