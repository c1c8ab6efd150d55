"""
Editors for authoring validation rules (the validation factory).

``get_editor(attribute_type)`` returns the editor for a type's rule model.
Editors are controlled: ``edit(rule, field, raw)`` takes the raw form input
for one field, coerces it, stores it in a copy of the rule and returns the
copy together with the live cross-field errors. A rule that breaks its own
invariants (``min > max``) is still stored; the errors are advisory.

``check(rule)`` is the pure cross-field check used after every edit.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from .coercion import parse_date, to_bool, to_iso_date, to_list, to_number, to_text
from .models import (
    ArrayRules,
    AttributeDefinition,
    AttributeType,
    ColorRules,
    DateRules,
    EmptyRules,
    FileRules,
    FormulaRules,
    NumberRules,
    ObjectRules,
    RatingRules,
    ReadonlyRules,
    RichTextRules,
    RuleModel,
    SelectRules,
    TableColumn,
    TableRules,
    TextRules,
    rule_model_for,
)
from .validators import ValidationError, ValidationLevel

logger = logging.getLogger(__name__)


@dataclass
class RuleEditResult:
    """Outcome of one rule edit: the stored rule plus its live errors."""

    rule: RuleModel
    errors: List[ValidationError] = field(default_factory=list)

    @property
    def field_errors(self) -> Dict[str, List[str]]:
        """Error messages grouped by the camelCase rule field they concern."""
        grouped: Dict[str, List[str]] = {}
        for error in self.errors:
            match = re.match(r"rule '([^']+)'", error.location)
            key = match.group(1) if match else ""
            grouped.setdefault(key, []).append(error.message)
        return grouped

    @property
    def is_consistent(self) -> bool:
        return not any(error.level == ValidationLevel.ERROR for error in self.errors)


class RuleEditor:
    """Base editor; subclasses declare how their fields are coerced."""

    model = RuleModel
    title = "Validation rules"
    number_fields: Set[str] = set()
    integer_fields: Set[str] = set()
    list_fields: Set[str] = set()
    bool_fields: Set[str] = set()
    date_fields: Set[str] = set()
    text_fields: Set[str] = set()

    # =========================================================================
    # Editing
    # =========================================================================

    def new_rule(self) -> RuleModel:
        return self.model()

    def ensure_rule(self, rule: Any) -> RuleModel:
        if rule is None:
            return self.new_rule()
        if isinstance(rule, RuleModel):
            return rule
        return self.model.model_validate(rule)

    def field_name(self, name: str) -> str:
        """Resolve a camelCase or snake_case field name for this rule model."""
        for attr, info in self.model.model_fields.items():
            if name in (attr, info.alias):
                return attr
        raise ValueError(f"'{name}' is not a field of {self.model.__name__}")

    def field_alias(self, attr: str) -> str:
        info = self.model.model_fields.get(attr)
        return info.alias if info is not None and info.alias else attr

    def coerce_field(self, attr: str, raw: Any) -> Any:
        if attr in self.bool_fields:
            return bool(to_bool(raw))
        if attr in self.integer_fields:
            return to_number(raw, integer=True)
        if attr in self.number_fields:
            return to_number(raw)
        if attr in self.list_fields:
            items = [str(item).strip() for item in to_list(raw)]
            return [item for item in items if item] or None
        if attr in self.date_fields:
            return to_iso_date(raw)
        if attr in self.text_fields:
            return to_text(raw) or None
        if isinstance(raw, str) and raw == "":
            return None
        return raw

    def edit(self, rule: Any, name: str, raw: Any) -> RuleEditResult:
        rule = self.ensure_rule(rule)
        attr = self.field_name(name)
        value = self.coerce_field(attr, raw)
        updated = self.model.model_validate({**rule.model_dump(), attr: value})
        result = RuleEditResult(rule=updated, errors=self.check(updated))
        if result.errors:
            logger.debug(
                f"{self.model.__name__} stored with {len(result.errors)} authoring error(s)"
            )
        return result

    def is_empty(self, rule: Any) -> bool:
        """True when no rule has been authored yet."""
        rule = self.ensure_rule(rule)
        return not rule.model_dump(exclude_defaults=True)

    # =========================================================================
    # Cross-field checks
    # =========================================================================

    def check(self, rule: Any) -> List[ValidationError]:
        return []

    def _error(
        self,
        attr: str,
        rule: str,
        message: str,
        suggestion: str = "",
        level: ValidationLevel = ValidationLevel.ERROR,
    ) -> ValidationError:
        return ValidationError(
            level=level,
            rule=rule,
            message=message,
            location=f"rule '{self.field_alias(attr)}'",
            suggestion=suggestion,
        )

    def _check_range(
        self,
        rule: RuleModel,
        low_attr: str,
        high_attr: str,
        code: str,
        parse: Optional[Callable[[Any], Any]] = None,
    ) -> List[ValidationError]:
        """Report ``low > high`` once on each of the two fields.

        ``parse`` turns the stored values into comparable ones; a value it
        cannot parse (``None``) skips the comparison.
        """
        low_raw = getattr(rule, low_attr)
        high_raw = getattr(rule, high_attr)
        low = parse(low_raw) if parse is not None and low_raw is not None else low_raw
        high = parse(high_raw) if parse is not None and high_raw is not None else high_raw
        if low is None or high is None or not low > high:
            return []
        low_alias = self.field_alias(low_attr)
        high_alias = self.field_alias(high_attr)
        message = f"{low_alias} ({low_raw}) must not exceed {high_alias} ({high_raw})"
        return [
            self._error(low_attr, code, message, suggestion=f"Lower {low_alias}"),
            self._error(high_attr, code, message, suggestion=f"Raise {high_alias}"),
        ]

    def _check_non_negative(
        self, rule: RuleModel, attrs: Iterable[str], code: str
    ) -> List[ValidationError]:
        errors = []
        for attr in attrs:
            value = getattr(rule, attr)
            if value is not None and value < 0:
                errors.append(
                    self._error(
                        attr, code, f"{self.field_alias(attr)} cannot be negative, got {value}"
                    )
                )
        return errors


# =============================================================================
# Type-specific editors
# =============================================================================


class TextRuleEditor(RuleEditor):
    model = TextRules
    title = "Text validation rules"
    integer_fields = {"min_length", "max_length"}
    text_fields = {"pattern", "placeholder"}

    def check(self, rule: Any) -> List[ValidationError]:
        rule = self.ensure_rule(rule)
        errors = self._check_non_negative(rule, ("min_length", "max_length"), "RULE_TEXT_02")
        errors += self._check_range(rule, "min_length", "max_length", "RULE_TEXT_01")
        if rule.pattern:
            try:
                re.compile(rule.pattern)
            except (re.error, TypeError) as e:
                errors.append(
                    self._error(
                        "pattern",
                        "RULE_TEXT_03",
                        f"Pattern is not a valid regular expression: {e}",
                    )
                )
        return errors


class RichTextRuleEditor(TextRuleEditor):
    model = RichTextRules
    title = "Rich text validation rules"
    integer_fields = {"min_length", "max_length", "max_text_length"}
    list_fields = {"allowed_tags"}

    def check(self, rule: Any) -> List[ValidationError]:
        rule = self.ensure_rule(rule)
        errors = super().check(rule)
        errors += self._check_non_negative(rule, ("max_text_length",), "RULE_TEXT_02")
        return errors


class NumberRuleEditor(RuleEditor):
    model = NumberRules
    title = "Number validation rules"
    number_fields = {"min", "max", "step"}
    bool_fields = {"is_integer", "is_positive", "is_negative", "is_zero"}

    def check(self, rule: Any) -> List[ValidationError]:
        rule = self.ensure_rule(rule)
        errors = self._check_range(rule, "min", "max", "RULE_NUM_01")
        if rule.is_positive and rule.is_negative:
            message = "A number cannot be required to be both positive and negative"
            errors.append(self._error("is_positive", "RULE_NUM_02", message))
            errors.append(self._error("is_negative", "RULE_NUM_02", message))
        if rule.step is not None and rule.step <= 0:
            errors.append(
                self._error("step", "RULE_NUM_03", f"step must be greater than 0, got {rule.step}")
            )
        return errors

    def exact_digits(self, rule: Any, digits: Any) -> RuleEditResult:
        """Constrain values to numbers with exactly ``digits`` digits (e.g. 11 for national ids)."""
        rule = self.ensure_rule(rule)
        count = to_number(digits, integer=True)
        if count is None or count <= 0:
            return RuleEditResult(rule=rule, errors=self.check(rule))
        minimum = 0 if count == 1 else 10 ** (count - 1)
        maximum = 10**count - 1
        updated = rule.model_copy(update={"min": minimum, "max": maximum, "is_integer": True})
        return RuleEditResult(rule=updated, errors=self.check(updated))


class DateRuleEditor(RuleEditor):
    model = DateRules
    title = "Date validation rules"
    date_fields = {"min_date", "max_date"}

    def check(self, rule: Any) -> List[ValidationError]:
        rule = self.ensure_rule(rule)
        errors = []
        for attr in ("min_date", "max_date"):
            value = getattr(rule, attr)
            if value is not None and parse_date(value) is None:
                errors.append(
                    self._error(
                        attr,
                        "RULE_DATE_02",
                        f"{self.field_alias(attr)} '{value}' is not a valid date",
                        suggestion="Use ISO format like '2024-01-31'",
                    )
                )
        errors += self._check_range(rule, "min_date", "max_date", "RULE_DATE_01", parse=parse_date)
        return errors


class SelectRuleEditor(RuleEditor):
    model = SelectRules
    title = "Selection validation rules"
    integer_fields = {"min_selections", "max_selections"}

    def check(self, rule: Any) -> List[ValidationError]:
        rule = self.ensure_rule(rule)
        errors = self._check_non_negative(
            rule, ("min_selections", "max_selections"), "RULE_SEL_02"
        )
        errors += self._check_range(rule, "min_selections", "max_selections", "RULE_SEL_01")
        return errors


class FileRuleEditor(RuleEditor):
    model = FileRules
    title = "File validation rules"
    integer_fields = {"max_file_size", "max_files", "max_width", "max_height"}
    list_fields = {"allowed_extensions"}
    text_fields = {"aspect_ratio"}

    def check(self, rule: Any) -> List[ValidationError]:
        rule = self.ensure_rule(rule)
        errors = self._check_non_negative(
            rule, ("max_file_size", "max_files", "max_width", "max_height"), "RULE_FILE_01"
        )
        if rule.aspect_ratio and not re.match(r"^\d+:\d+$", rule.aspect_ratio):
            errors.append(
                self._error(
                    "aspect_ratio",
                    "RULE_FILE_02",
                    f"Aspect ratio '{rule.aspect_ratio}' is not in 'W:H' form",
                    suggestion="Use a ratio like '16:9' or '1:1'",
                )
            )
        return errors


class RatingRuleEditor(RuleEditor):
    model = RatingRules
    title = "Rating validation rules"
    number_fields = {"min_rating", "max_rating"}
    bool_fields = {"allow_half_stars"}

    def check(self, rule: Any) -> List[ValidationError]:
        rule = self.ensure_rule(rule)
        return self._check_range(rule, "min_rating", "max_rating", "RULE_RATE_01")


class ColorRuleEditor(RuleEditor):
    model = ColorRules
    title = "Color validation rules"

    def coerce_field(self, attr: str, raw: Any) -> Any:
        if attr == "color_format":
            text = str(raw).strip().lower() if raw is not None else ""
            return text if text in ("hex", "rgb", "hsl") else None
        return super().coerce_field(attr, raw)


class ArrayRuleEditor(RuleEditor):
    model = ArrayRules
    title = "Array validation rules"
    integer_fields = {"min_items", "max_items"}
    bool_fields = {"unique_items", "allow_empty"}

    def check(self, rule: Any) -> List[ValidationError]:
        rule = self.ensure_rule(rule)
        errors = self._check_non_negative(rule, ("min_items", "max_items"), "RULE_ARR_02")
        errors += self._check_range(rule, "min_items", "max_items", "RULE_ARR_01")
        return errors


class ObjectRuleEditor(RuleEditor):
    model = ObjectRules
    title = "Object validation rules"
    list_fields = {"required_properties"}
    bool_fields = {"strict_mode", "allow_empty_object"}
    text_fields = {"json_schema"}

    def coerce_field(self, attr: str, raw: Any) -> Any:
        if attr == "json_schema" and isinstance(raw, (dict, list)):
            return json.dumps(raw)
        return super().coerce_field(attr, raw)

    def check(self, rule: Any) -> List[ValidationError]:
        rule = self.ensure_rule(rule)
        errors = []
        if rule.json_schema:
            try:
                json.loads(rule.json_schema)
            except (TypeError, ValueError) as e:
                errors.append(
                    self._error("json_schema", "RULE_OBJ_01", f"JSON schema is not valid JSON: {e}")
                )
        return errors


class TableRuleEditor(RuleEditor):
    model = TableRules
    title = "Table validation rules"
    integer_fields = {"min_rows", "max_rows"}
    bool_fields = {"allow_add_rows", "allow_delete_rows", "allow_edit_rows"}

    @staticmethod
    def default_columns() -> List[TableColumn]:
        return [
            TableColumn(name="No.", type="number", required=True, width=80),
            TableColumn(name="Width (cm)", type="number", required=True, width=100),
            TableColumn(name="Height (cm)", type="number", required=True, width=100),
        ]

    def coerce_field(self, attr: str, raw: Any) -> Any:
        if attr == "columns":
            return [
                column if isinstance(column, TableColumn) else TableColumn.model_validate(column)
                for column in raw or []
            ]
        return super().coerce_field(attr, raw)

    def check(self, rule: Any) -> List[ValidationError]:
        rule = self.ensure_rule(rule)
        errors = self._check_non_negative(rule, ("min_rows", "max_rows"), "RULE_TBL_02")
        errors += self._check_range(rule, "min_rows", "max_rows", "RULE_TBL_01")

        seen = set()
        for index, column in enumerate(rule.columns):
            if not column.name.strip():
                errors.append(
                    self._error("columns", "RULE_TBL_03", f"Column {index + 1} has no name")
                )
            elif column.name in seen:
                errors.append(
                    self._error(
                        "columns",
                        "RULE_TBL_04",
                        f"Duplicate column name '{column.name}'",
                        level=ValidationLevel.WARNING,
                    )
                )
            seen.add(column.name)
            if column.type == "select" and not column.options:
                errors.append(
                    self._error(
                        "columns",
                        "RULE_TBL_05",
                        f"Select column '{column.name}' has no options",
                        suggestion="Add at least one option",
                    )
                )
        return errors

    # Column editing

    def _with_columns(self, rule: TableRules, columns: List[TableColumn]) -> RuleEditResult:
        updated = rule.model_copy(update={"columns": columns})
        return RuleEditResult(rule=updated, errors=self.check(updated))

    def add_column(self, rule: Any, column: Optional[Any] = None) -> RuleEditResult:
        rule = self.ensure_rule(rule)
        if column is None:
            column = TableColumn(name="New column", type="text", required=False, width=150)
        elif not isinstance(column, TableColumn):
            column = TableColumn.model_validate(column)
        return self._with_columns(rule, list(rule.columns) + [column])

    def remove_column(self, rule: Any, index: int) -> RuleEditResult:
        rule = self.ensure_rule(rule)
        columns = [column for i, column in enumerate(rule.columns) if i != index]
        return self._with_columns(rule, columns)

    def update_column(self, rule: Any, index: int, name: str, raw: Any) -> RuleEditResult:
        rule = self.ensure_rule(rule)
        columns = list(rule.columns)
        if not 0 <= index < len(columns):
            return RuleEditResult(rule=rule, errors=self.check(rule))
        current = columns[index]
        if name == "width":
            raw = to_number(raw, integer=True) or 150
        elif name == "required":
            raw = bool(to_bool(raw))
        columns[index] = TableColumn.model_validate({**current.model_dump(), name: raw})
        return self._with_columns(rule, columns)

    def add_option(self, rule: Any, index: int, option: str = "") -> RuleEditResult:
        rule = self.ensure_rule(rule)
        columns = list(rule.columns)
        if 0 <= index < len(columns):
            column = columns[index]
            columns[index] = column.model_copy(update={"options": list(column.options or []) + [option]})
        return self._with_columns(rule, columns)

    def remove_option(self, rule: Any, index: int, option_index: int) -> RuleEditResult:
        rule = self.ensure_rule(rule)
        columns = list(rule.columns)
        if 0 <= index < len(columns):
            column = columns[index]
            options = [o for i, o in enumerate(column.options or []) if i != option_index]
            columns[index] = column.model_copy(update={"options": options})
        return self._with_columns(rule, columns)

    def update_option(self, rule: Any, index: int, option_index: int, value: str) -> RuleEditResult:
        rule = self.ensure_rule(rule)
        columns = list(rule.columns)
        if 0 <= index < len(columns):
            column = columns[index]
            options = list(column.options or [])
            if 0 <= option_index < len(options):
                options[option_index] = value
                columns[index] = column.model_copy(update={"options": options})
        return self._with_columns(rule, columns)


class FormulaRuleEditor(RuleEditor):
    model = FormulaRules
    title = "Formula validation rules"
    list_fields = {"variables", "functions"}
    bool_fields = {"require_valid_syntax", "allow_empty_formula"}
    text_fields = {"default_formula"}

    def check(self, rule: Any) -> List[ValidationError]:
        rule = self.ensure_rule(rule)
        errors = []
        if rule.require_valid_syntax and rule.default_formula:
            depth = 0
            for char in rule.default_formula:
                depth += {"(": 1, ")": -1}.get(char, 0)
                if depth < 0:
                    break
            if depth != 0:
                errors.append(
                    self._error(
                        "default_formula",
                        "RULE_FORM_01",
                        "Default formula has unbalanced parentheses",
                    )
                )
        return errors


class ReadonlyRuleEditor(RuleEditor):
    model = ReadonlyRules
    title = "Read-only value"


class NoRulesEditor(RuleEditor):
    """Editor for types that support no validation rules."""

    model = EmptyRules

    def __init__(self, attribute_type: str):
        self.attribute_type = attribute_type
        self.title = f"{attribute_type} validation rules"

    @property
    def info(self) -> str:
        return f"No validation rules are supported for type '{self.attribute_type}'"

    def edit(self, rule: Any, name: str, raw: Any) -> RuleEditResult:
        return RuleEditResult(rule=self.ensure_rule(rule))


# =============================================================================
# Factory
# =============================================================================

EDITORS = {
    TextRules: TextRuleEditor,
    RichTextRules: RichTextRuleEditor,
    NumberRules: NumberRuleEditor,
    DateRules: DateRuleEditor,
    SelectRules: SelectRuleEditor,
    FileRules: FileRuleEditor,
    RatingRules: RatingRuleEditor,
    ColorRules: ColorRuleEditor,
    ArrayRules: ArrayRuleEditor,
    ObjectRules: ObjectRuleEditor,
    TableRules: TableRuleEditor,
    FormulaRules: FormulaRuleEditor,
    ReadonlyRules: ReadonlyRuleEditor,
}


def get_editor(attribute_type: Any) -> RuleEditor:
    """Return the rule editor for an attribute type (text editor when unknown)."""
    model = rule_model_for(attribute_type)
    if model is EmptyRules:
        parsed = AttributeType.parse(attribute_type)
        return NoRulesEditor(parsed.value if parsed else str(attribute_type))
    return EDITORS[model]()


class RuleAuthoringValidator:
    """Runs the authoring checks of every attribute in a schema."""

    def __init__(self, definitions: Iterable[AttributeDefinition]):
        self.definitions = list(definitions)
        self.errors: List[ValidationError] = []

    def validate_all(self) -> List[ValidationError]:
        self.errors = []
        for definition in self.definitions:
            for error in get_editor(definition.type).check(definition.rules):
                error.location = f"attribute '{definition.code}' > {error.location}"
                self.errors.append(error)
        return self.errors


def validate_schema_rules(
    definitions: Iterable[AttributeDefinition],
) -> List[ValidationError]:
    """Authoring errors across a set of attribute definitions."""
    return RuleAuthoringValidator(definitions).validate_all()
