"""
Validation of attribute values against their attribute definitions.

This module checks a value entered for an attribute against the attribute's
type and its authored validation rules (``AttributeDefinition.validations``).
Problems are returned as data, never raised.

Validation Layers:
1. Shape validation (pydantic models) - payload keys, rule shape per type
2. Authoring validation (rule_editors) - cross-field rule consistency
3. Value validation (this module) - required, ranges, formats, counts

Usage:
    from pim_mcp.validators import validate_attribute_value

    errors = validate_attribute_value(definition, value)
    if errors:
        for error in errors:
            print(f"[{error.level}] {error.rule}: {error.message}")
"""

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlparse

from .coercion import is_empty, parse_date, parse_datetime, to_number
from .models import (
    ArrayRules,
    AttributeDefinition,
    AttributeType,
    ColorRules,
    DateRules,
    FileRules,
    FormulaRules,
    NumberRules,
    ObjectRules,
    RatingRules,
    RichTextRules,
    SelectRules,
    TableRules,
    TextRules,
)


class ValidationLevel(str, Enum):
    """Severity level of validation error."""

    ERROR = "ERROR"  # Blocks submission
    WARNING = "WARNING"  # Stored, shown to the user
    INFO = "INFO"  # Informational


@dataclass
class ValidationError:
    """Structured validation error."""

    level: ValidationLevel
    rule: str  # e.g., "REQ_01", "NUM_02", "RULE_NUM_01"
    message: str
    location: str  # e.g., "attribute 'weight'" or "rule 'max'"
    suggestion: str = ""  # Optional fix suggestion

    def to_dict(self) -> Dict[str, str]:
        return {
            "level": self.level.value,
            "rule": self.rule,
            "message": self.message,
            "location": self.location,
            "suggestion": self.suggestion,
        }


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9\s\-().]{6,20}$")
TAG_PATTERN = re.compile(r"<\s*/?\s*([a-zA-Z][a-zA-Z0-9]*)")
COLOR_PATTERNS = {
    "hex": re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$"),
    "rgb": re.compile(r"^rgba?\(\s*\d{1,3}\s*,\s*\d{1,3}\s*,\s*\d{1,3}\s*(,\s*[\d.]+\s*)?\)$"),
    "hsl": re.compile(r"^hsla?\(\s*\d{1,3}\s*,\s*\d{1,3}%\s*,\s*\d{1,3}%\s*(,\s*[\d.]+\s*)?\)$"),
}


class AttributeValueValidator:
    """Validates one value against one attribute definition."""

    def __init__(self, definition: AttributeDefinition):
        self.definition = definition
        self.rules = definition.rules
        self.errors: List[ValidationError] = []
        self.location = f"attribute '{definition.code}'"

    def validate(self, value: Any) -> List[ValidationError]:
        """Run all checks for ``value`` and return errors."""
        self.errors = []
        attr_type = self.definition.type

        if is_empty(value):
            self._validate_empty()
            return self.errors

        if isinstance(self.rules, RichTextRules):
            self._validate_text(value)
            self._validate_rich_text(value)
        elif isinstance(self.rules, TextRules):
            self._validate_text(value)
            self._validate_format(value)
        elif isinstance(self.rules, NumberRules):
            self._validate_number(value)
        elif isinstance(self.rules, DateRules):
            self._validate_date(value)
        elif isinstance(self.rules, SelectRules):
            self._validate_select(value)
        elif isinstance(self.rules, ArrayRules):
            self._validate_array(value)
        elif isinstance(self.rules, ObjectRules):
            self._validate_object(value)
        elif isinstance(self.rules, TableRules):
            self._validate_table(value)
        elif isinstance(self.rules, RatingRules):
            self._validate_rating(value)
        elif isinstance(self.rules, ColorRules):
            self._validate_color(value)
        elif isinstance(self.rules, FileRules):
            self._validate_files(value)
        elif isinstance(self.rules, FormulaRules):
            self._validate_formula(value)
        elif attr_type == AttributeType.BOOLEAN and not isinstance(value, bool):
            self._error("BOOL_01", f"Expected true or false, got: {value!r}")

        return self.errors

    def _error(
        self,
        rule: str,
        message: str,
        suggestion: str = "",
        level: ValidationLevel = ValidationLevel.ERROR,
    ):
        self.errors.append(
            ValidationError(
                level=level,
                rule=rule,
                message=message,
                location=self.location,
                suggestion=suggestion,
            )
        )

    # =========================================================================
    # Required / empty values
    # =========================================================================

    def _validate_empty(self):
        if self.definition.is_required:
            self._error(
                "REQ_01",
                f"Attribute '{self.definition.code}' is required",
                suggestion="Enter a value before saving",
            )
            return

        rules = self.rules
        if isinstance(rules, ArrayRules) and rules.allow_empty is False:
            self._error("ARR_05", "Empty array is not allowed")
        elif isinstance(rules, ObjectRules) and rules.allow_empty_object is False:
            self._error("OBJ_03", "Empty object is not allowed")
        elif isinstance(rules, FormulaRules) and rules.allow_empty_formula is False:
            self._error("FORM_01", "Empty formula is not allowed")

    # =========================================================================
    # Text
    # =========================================================================

    def _validate_text(self, value: Any):
        if not isinstance(value, str):
            self._error("TEXT_00", f"Expected text, got: {type(value).__name__}")
            return

        rules: TextRules = self.rules
        if rules.min_length is not None and len(value) < rules.min_length:
            self._error(
                "TEXT_01",
                f"Text must be at least {rules.min_length} characters, got {len(value)}",
            )
        if rules.max_length is not None and len(value) > rules.max_length:
            self._error(
                "TEXT_02",
                f"Text must be at most {rules.max_length} characters, got {len(value)}",
            )
        if rules.pattern:
            try:
                matched = re.search(rules.pattern, value) is not None
            except re.error as e:
                self._error(
                    "TEXT_04",
                    f"Pattern '{rules.pattern}' is not a valid regular expression: {e}",
                    level=ValidationLevel.WARNING,
                )
                return
            if not matched:
                self._error(
                    "TEXT_03",
                    f"Text does not match pattern '{rules.pattern}'",
                )

    def _validate_format(self, value: Any):
        if not isinstance(value, str):
            return
        attr_type = self.definition.type

        if attr_type == AttributeType.EMAIL and not EMAIL_PATTERN.match(value):
            self._error(
                "FMT_01",
                f"Invalid email address: '{value}'",
                suggestion="Use a format like 'name@example.com'",
            )
        elif attr_type == AttributeType.URL:
            parsed = urlparse(value)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                self._error(
                    "FMT_02",
                    f"Invalid URL: '{value}'",
                    suggestion="Use a full address like 'https://example.com'",
                )
        elif attr_type == AttributeType.PHONE and not PHONE_PATTERN.match(value):
            self._error("FMT_03", f"Invalid phone number: '{value}'")

    def _validate_rich_text(self, value: Any):
        if not isinstance(value, str):
            return
        rules: RichTextRules = self.rules

        if rules.max_text_length is not None:
            plain = re.sub(r"<[^>]*>", "", value)
            if len(plain) > rules.max_text_length:
                self._error(
                    "RICH_01",
                    f"Text content must be at most {rules.max_text_length} characters, got {len(plain)}",
                )
        if rules.allowed_tags is not None:
            allowed = {tag.lower() for tag in rules.allowed_tags}
            used = {tag.lower() for tag in TAG_PATTERN.findall(value)}
            forbidden = sorted(used - allowed)
            if forbidden:
                self._error(
                    "RICH_02",
                    f"HTML tags not allowed: {forbidden}",
                    suggestion=f"Use only: {sorted(allowed)}",
                )

    # =========================================================================
    # Numbers
    # =========================================================================

    def _validate_number(self, value: Any):
        number = to_number(value)
        if number is None:
            self._error("NUM_00", f"Expected a number, got: {value!r}")
            return

        rules: NumberRules = self.rules
        if rules.min is not None and number < rules.min:
            self._error("NUM_01", f"Value must be at least {rules.min}, got {number}")
        if rules.max is not None and number > rules.max:
            self._error("NUM_02", f"Value must be at most {rules.max}, got {number}")

        wants_integer = rules.is_integer or self.definition.type == AttributeType.INTEGER
        if wants_integer and float(number) != int(number):
            self._error("NUM_03", f"Value must be a whole number, got {number}")

        zero_allowed = bool(rules.is_zero)
        if number == 0:
            if not zero_allowed and (rules.is_positive or rules.is_negative):
                self._error("NUM_06", "Zero is not allowed")
            return
        if rules.is_positive and number < 0:
            self._error("NUM_04", f"Value must be positive, got {number}")
        if rules.is_negative and number > 0:
            self._error("NUM_05", f"Value must be negative, got {number}")

    def _validate_rating(self, value: Any):
        number = to_number(value)
        if number is None:
            self._error("RATE_00", f"Expected a rating, got: {value!r}")
            return

        rules: RatingRules = self.rules
        if rules.min_rating is not None and number < rules.min_rating:
            self._error("RATE_01", f"Rating must be at least {rules.min_rating}")
        if rules.max_rating is not None and number > rules.max_rating:
            self._error("RATE_02", f"Rating must be at most {rules.max_rating}")

        doubled = number * 2
        if float(number) != int(number):
            if not rules.allow_half_stars or float(doubled) != int(doubled):
                self._error(
                    "RATE_03",
                    f"Rating {number} is not a whole{' or half' if rules.allow_half_stars else ''} star value",
                )

    # =========================================================================
    # Dates
    # =========================================================================

    def _validate_date(self, value: Any):
        rules: DateRules = self.rules
        parsed = parse_date(value)
        if self.definition.type == AttributeType.DATETIME and parse_datetime(value) is None:
            parsed = None
        if parsed is None:
            self._error(
                "DATE_00",
                f"Invalid date: {value!r}",
                suggestion="Use ISO format like '2024-01-31'",
            )
            return

        min_date = parse_date(rules.min_date)
        max_date = parse_date(rules.max_date)
        if min_date is not None and parsed < min_date:
            self._error("DATE_01", f"Date must be on or after {min_date.isoformat()}")
        if max_date is not None and parsed > max_date:
            self._error("DATE_02", f"Date must be on or before {max_date.isoformat()}")

    # =========================================================================
    # Choices
    # =========================================================================

    def _validate_select(self, value: Any):
        rules: SelectRules = self.rules
        known = self.definition.option_keys()

        if self.definition.type == AttributeType.MULTISELECT:
            selected = value if isinstance(value, list) else [value]
            unknown = [item for item in selected if known and str(item) not in known]
            if unknown:
                self._error(
                    "SEL_01",
                    f"Unknown option(s): {unknown}",
                    suggestion=f"Use one of: {known}",
                )
            count = len(selected)
            if rules.min_selections is not None and count < rules.min_selections:
                self._error(
                    "SEL_02",
                    f"Select at least {rules.min_selections} option(s), got {count}",
                )
            if rules.max_selections is not None and count > rules.max_selections:
                self._error(
                    "SEL_03",
                    f"Select at most {rules.max_selections} option(s), got {count}",
                )
            return

        if isinstance(value, list):
            self._error("SEL_04", "Single select accepts exactly one option")
            return
        if known and str(value) not in known:
            self._error(
                "SEL_01",
                f"Unknown option: '{value}'",
                suggestion=f"Use one of: {known}",
            )

    # =========================================================================
    # Composite values
    # =========================================================================

    def _validate_array(self, value: Any):
        if not isinstance(value, list):
            self._error("ARR_00", f"Expected a list, got: {type(value).__name__}")
            return

        rules: ArrayRules = self.rules
        count = len(value)
        if rules.min_items is not None and count < rules.min_items:
            self._error("ARR_01", f"At least {rules.min_items} item(s) required, got {count}")
        if rules.max_items is not None and count > rules.max_items:
            self._error("ARR_02", f"At most {rules.max_items} item(s) allowed, got {count}")

        if rules.unique_items:
            seen = set()
            duplicates = []
            for item in value:
                marker = json.dumps(item, sort_keys=True, default=str)
                if marker in seen:
                    duplicates.append(item)
                seen.add(marker)
            if duplicates:
                self._error("ARR_03", f"Duplicate item(s): {duplicates}")

        if rules.item_type:
            wrong = [item for item in value if not _matches_item_type(item, rules.item_type)]
            if wrong:
                self._error(
                    "ARR_04",
                    f"Item(s) not of type '{rules.item_type}': {wrong}",
                )

    def _validate_object(self, value: Any):
        if not isinstance(value, dict):
            self._error("OBJ_00", f"Expected an object, got: {type(value).__name__}")
            return

        rules: ObjectRules = self.rules
        missing = [key for key in rules.required_properties or [] if key not in value]
        if missing:
            self._error("OBJ_01", f"Missing required properties: {missing}")

        if rules.strict_mode and rules.json_schema:
            try:
                schema = json.loads(rules.json_schema)
            except ValueError:
                return
            properties = schema.get("properties") if isinstance(schema, dict) else None
            if isinstance(properties, dict):
                extra = sorted(key for key in value if key not in properties)
                if extra:
                    self._error("OBJ_02", f"Properties not declared in schema: {extra}")

    def _validate_table(self, value: Any):
        if not isinstance(value, list) or not all(isinstance(row, list) for row in value):
            self._error("TBL_00", "Expected a list of rows")
            return

        rules: TableRules = self.rules
        count = len(value)
        if rules.min_rows is not None and count < rules.min_rows:
            self._error("TBL_01", f"row count below minimum ({count} < {rules.min_rows})")
        if rules.max_rows is not None and count > rules.max_rows:
            self._error("TBL_02", f"row count above maximum ({count} > {rules.max_rows})")

        width = len(rules.columns)
        if width:
            misaligned = [index for index, row in enumerate(value) if len(row) != width]
            if misaligned:
                self._error(
                    "TBL_03",
                    f"Row(s) {misaligned} do not have {width} cells",
                    level=ValidationLevel.WARNING,
                )

    # =========================================================================
    # Misc types
    # =========================================================================

    def _validate_color(self, value: Any):
        rules: ColorRules = self.rules
        if not isinstance(value, str):
            self._error("COLOR_00", f"Expected a color string, got: {value!r}")
            return
        formats = [rules.color_format] if rules.color_format else list(COLOR_PATTERNS)
        if not any(COLOR_PATTERNS[fmt].match(value.strip()) for fmt in formats):
            self._error(
                "COLOR_01",
                f"Invalid color '{value}'",
                suggestion=f"Use {formats[0]} format, e.g. '#ff8800'" if formats[0] == "hex" else "",
            )

    def _validate_files(self, value: Any):
        rules: FileRules = self.rules
        files = value if isinstance(value, list) else [value]

        if rules.max_files is not None and len(files) > rules.max_files:
            self._error("FILE_01", f"At most {rules.max_files} file(s) allowed, got {len(files)}")

        if rules.allowed_extensions:
            allowed = {ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in rules.allowed_extensions}
            for item in files:
                name = item.get("name") if isinstance(item, dict) else str(item)
                if not name:
                    continue
                suffix = "." + name.rsplit(".", 1)[-1].lower() if "." in name else ""
                if suffix not in allowed:
                    self._error(
                        "FILE_02",
                        f"File '{name}' has a disallowed extension",
                        suggestion=f"Allowed: {sorted(allowed)}",
                    )

        if rules.max_file_size is not None:
            for item in files:
                size = item.get("size") if isinstance(item, dict) else None
                if isinstance(size, (int, float)) and size > rules.max_file_size:
                    self._error(
                        "FILE_03",
                        f"File exceeds {rules.max_file_size} bytes ({size})",
                    )

    def _validate_formula(self, value: Any):
        rules: FormulaRules = self.rules
        if not isinstance(value, str):
            self._error("FORM_00", f"Expected a formula string, got: {value!r}")
            return
        if rules.require_valid_syntax and not _balanced(value):
            self._error("FORM_02", "Formula has unbalanced parentheses")


def _matches_item_type(item: Any, item_type: str) -> bool:
    kind = item_type.lower()
    if kind in ("string", "text"):
        return isinstance(item, str)
    if kind == "number":
        return isinstance(item, (int, float)) and not isinstance(item, bool)
    if kind == "integer":
        return isinstance(item, int) and not isinstance(item, bool)
    if kind == "boolean":
        return isinstance(item, bool)
    if kind == "object":
        return isinstance(item, dict)
    return True


def _balanced(expression: str) -> bool:
    depth = 0
    for char in expression:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


# =============================================================================
# Public API
# =============================================================================


def validate_attribute_value(
    definition: AttributeDefinition, value: Any
) -> List[ValidationError]:
    """
    Validate one attribute value.

    Args:
        definition: Attribute definition carrying type and validation rules
        value: Native value (see coercion.coerce_value)

    Returns:
        List of ValidationError objects (empty if valid)
    """
    return AttributeValueValidator(definition).validate(value)


def validate_attributes(
    definitions: Iterable[AttributeDefinition], values: Mapping[str, Any]
) -> Dict[str, List[ValidationError]]:
    """Validate a record's values, keyed by attribute code. Valid codes are omitted."""
    results = {}
    for definition in definitions:
        errors = validate_attribute_value(definition, values.get(definition.code))
        if errors:
            results[definition.code] = errors
    return results


def has_blocking_errors(errors: Iterable[ValidationError]) -> bool:
    return any(error.level == ValidationLevel.ERROR for error in errors)


def format_validation_errors(errors: List[ValidationError], title: Optional[str] = None) -> str:
    """Format validation errors as a readable report."""
    if not errors:
        return "✅ Validation passed!"

    report = [title or f"❌ Found {len(errors)} validation error(s):\n"]

    for idx, err in enumerate(errors, 1):
        report.append(f"{idx}. [{err.level.value}] {err.rule}: {err.message}")
        report.append(f"   Location: {err.location}")
        if err.suggestion:
            report.append(f"   Suggestion: {err.suggestion}")
        report.append("")

    return "\n".join(report)
