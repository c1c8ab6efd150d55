"""
Cell, edit and detail renderers for every attribute type.

Renderers produce presentation data, not markup:

- cell   -> a short display string for lists and grids ("-" when empty)
- edit   -> an ``InputWidget`` whose ``change(raw)`` coerces raw input to the
            type's native value before calling ``on_change``
- detail -> a ``DetailView`` (label, description, required flag, body, error)

``build_renderer_sets()`` returns one ``RendererSet`` per attribute type;
``registry.default_registry()`` indexes them.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from .coercion import coerce_value, is_empty, parse_date, parse_datetime, to_list, to_number
from .labels import DEFAULT_LANGUAGE, get_entity_description, get_entity_name, option_label
from .models import (
    AttributeDefinition,
    AttributeType,
    NumberRules,
    RatingRules,
    RuleModel,
    TableRules,
    TextRules,
)
from .table_grid import TableGrid

PLACEHOLDER = "-"
MAX_CELL_LENGTH = 50
PASSWORD_MASK = "••••••••"
DEFAULT_MAX_RATING = 5


@dataclass
class InputWidget:
    """Edit-mode description of an input control."""

    attribute_type: AttributeType
    input_type: str
    value: Any
    on_change: Optional[Callable[[Any], None]] = None
    options: List[Dict[str, str]] = field(default_factory=list)
    step: Optional[Union[int, float]] = None
    disabled: bool = False
    placeholder: Optional[str] = None
    validation: Optional[RuleModel] = None
    grid: Optional[TableGrid] = None

    def change(self, raw: Any) -> bool:
        """Coerce ``raw`` and report it through ``on_change``; no-op when disabled."""
        if self.disabled or self.on_change is None:
            return False
        self.value = coerce_value(self.attribute_type, raw)
        self.on_change(self.value)
        return True

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "type": self.attribute_type.value,
            "inputType": self.input_type,
            "value": self.value,
            "disabled": self.disabled,
        }
        if self.options:
            data["options"] = self.options
        if self.step is not None:
            data["step"] = self.step
        if self.placeholder:
            data["placeholder"] = self.placeholder
        if self.validation is not None:
            data["validation"] = self.validation.to_payload()
        if self.grid is not None:
            data["rows"] = self.grid.rows
            data["columns"] = [column.model_dump(by_alias=True, exclude_none=True) for column in self.grid.columns]
        return data


@dataclass
class DetailView:
    """Label/description/required wrapper around a cell or edit body."""

    label: str
    description: str
    required: bool
    body: Union[str, InputWidget]
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "description": self.description,
            "required": self.required,
            "body": self.body.to_dict() if isinstance(self.body, InputWidget) else self.body,
            "error": self.error,
        }


@dataclass(frozen=True)
class RendererSet:
    cell: Callable[..., str]
    edit: Callable[..., InputWidget]
    detail: Callable[..., DetailView]


# =============================================================================
# Cell renderers
# =============================================================================


def _truncate(text: str, limit: int = MAX_CELL_LENGTH) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _options_of(attribute: Optional[AttributeDefinition]) -> List[Any]:
    return list(attribute.options) if attribute is not None else []


def _label_for(value: Any, attribute: Optional[AttributeDefinition], language: str) -> str:
    for option in _options_of(attribute):
        key = option if isinstance(option, str) else option.key
        if key is not None and str(key) == str(value):
            return option_label(option, language) or str(value)
    return str(value)


def text_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    if is_empty(value):
        return PLACEHOLDER
    return _truncate(str(value))


def rich_text_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    if is_empty(value):
        return PLACEHOLDER
    plain = re.sub(r"<[^>]+>", "", str(value)).strip()
    return _truncate(plain) if plain else PLACEHOLDER


def password_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    return PLACEHOLDER if is_empty(value) else PASSWORD_MASK


def number_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    if is_empty(value):
        return PLACEHOLDER
    number = to_number(value)
    if number is None:
        return str(value)
    return f"{number:,}"


def boolean_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    if value is None or value == "":
        return PLACEHOLDER
    if isinstance(value, str):
        value = value.strip().lower() in ("true", "1", "yes", "on")
    return "Yes" if value else "No"


def date_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    if is_empty(value):
        return PLACEHOLDER
    parsed = parse_date(value)
    return parsed.strftime("%d %b %Y") if parsed else str(value)


def datetime_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    if is_empty(value):
        return PLACEHOLDER
    parsed = parse_datetime(value)
    return parsed.strftime("%d %b %Y %H:%M") if parsed else str(value)


def select_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    if is_empty(value):
        return PLACEHOLDER
    return _truncate(_label_for(value, attribute, language))


def multiselect_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    items = to_list(value)
    if not items:
        return PLACEHOLDER
    return _truncate(", ".join(_label_for(item, attribute, language) for item in items))


def table_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    rows = value if isinstance(value, list) else []
    if not rows:
        return PLACEHOLDER
    return f"{len(rows)} rows"


def file_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    if is_empty(value):
        return PLACEHOLDER
    if isinstance(value, dict):
        value = value.get("name") or value.get("filename") or value.get("url") or ""
    name = str(value).rstrip("/").rsplit("/", 1)[-1]
    return _truncate(name) if name else PLACEHOLDER


def attachment_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    files = to_list(value)
    if not files:
        return PLACEHOLDER
    return f"{len(files)} files"


def color_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    return PLACEHOLDER if is_empty(value) else str(value).strip()


def rating_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    number = to_number(value)
    if number is None:
        return PLACEHOLDER
    maximum = DEFAULT_MAX_RATING
    if attribute is not None and isinstance(attribute.rules, RatingRules) and attribute.rules.max_rating:
        maximum = int(attribute.rules.max_rating)
    filled = max(0, min(int(round(number)), maximum))
    return "★" * filled + "☆" * (maximum - filled)


def json_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    if is_empty(value):
        return PLACEHOLDER
    if isinstance(value, str):
        return _truncate(value)
    return _truncate(json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str))


def array_cell(value: Any, attribute: Optional[AttributeDefinition] = None, language: str = DEFAULT_LANGUAGE) -> str:
    items = to_list(value)
    if not items:
        return PLACEHOLDER
    return _truncate(", ".join(str(item) for item in items))


# =============================================================================
# Edit renderers
# =============================================================================


def _widget_options(attribute: Optional[AttributeDefinition]) -> List[Dict[str, str]]:
    options = []
    for option in _options_of(attribute):
        key = option if isinstance(option, str) else option.key
        if key is None:
            continue
        options.append({"value": str(key), "label": option_label(option) or str(key)})
    return options


def _edit_renderer(
    attribute_type: AttributeType,
    input_type: str,
    step: Optional[Union[int, float]] = None,
    with_options: bool = False,
    read_only: bool = False,
) -> Callable[..., InputWidget]:
    def render(
        value: Any,
        on_change: Optional[Callable[[Any], None]],
        disabled: bool = False,
        validation: Optional[RuleModel] = None,
        attribute: Optional[AttributeDefinition] = None,
    ) -> InputWidget:
        if validation is None and attribute is not None:
            validation = attribute.validations
        widget_step = step
        if isinstance(validation, NumberRules) and validation.step:
            widget_step = validation.step
        return InputWidget(
            attribute_type=attribute_type,
            input_type=input_type,
            value=value,
            on_change=on_change,
            options=_widget_options(attribute) if with_options else [],
            step=widget_step,
            disabled=disabled or read_only,
            placeholder=validation.placeholder if isinstance(validation, TextRules) else None,
            validation=validation,
        )

    return render


def table_edit(
    value: Any,
    on_change: Optional[Callable[[Any], None]],
    disabled: bool = False,
    validation: Optional[RuleModel] = None,
    attribute: Optional[AttributeDefinition] = None,
) -> InputWidget:
    if validation is None and attribute is not None:
        validation = attribute.validations
    rules = validation if isinstance(validation, TableRules) else TableRules()
    rows = coerce_value(AttributeType.TABLE, value) if value else []
    grid = TableGrid.from_rules(rules, rows=rows, disabled=disabled, on_change=on_change)
    grid.initialize()
    return InputWidget(
        attribute_type=AttributeType.TABLE,
        input_type="table",
        value=grid.rows,
        on_change=on_change,
        disabled=disabled,
        validation=validation,
        grid=grid,
    )


# =============================================================================
# Detail renderers
# =============================================================================


def _detail_renderer(cell: Callable[..., str], edit: Callable[..., InputWidget]) -> Callable[..., DetailView]:
    def render(
        attribute: AttributeDefinition,
        value: Any,
        language: str = DEFAULT_LANGUAGE,
        error: Optional[str] = None,
        on_change: Optional[Callable[[Any], None]] = None,
        disabled: bool = False,
    ) -> DetailView:
        if on_change is not None:
            body: Union[str, InputWidget] = edit(
                value, on_change, disabled=disabled, attribute=attribute
            )
        else:
            body = cell(value, attribute, language)
        return DetailView(
            label=get_entity_name(attribute, language),
            description=get_entity_description(attribute, language),
            required=attribute.is_required,
            body=body,
            error=error,
        )

    return render


def _renderer_set(cell: Callable[..., str], edit: Callable[..., InputWidget]) -> RendererSet:
    return RendererSet(cell=cell, edit=edit, detail=_detail_renderer(cell, edit))


def build_renderer_sets() -> Dict[AttributeType, RendererSet]:
    """One renderer set per attribute type."""
    t = AttributeType
    cells = {
        t.TEXT: text_cell,
        t.TEXTAREA: text_cell,
        t.NUMBER: number_cell,
        t.INTEGER: number_cell,
        t.DECIMAL: number_cell,
        t.BOOLEAN: boolean_cell,
        t.EMAIL: text_cell,
        t.URL: text_cell,
        t.PASSWORD: password_cell,
        t.DATE: date_cell,
        t.DATETIME: datetime_cell,
        t.TIME: text_cell,
        t.SELECT: select_cell,
        t.MULTISELECT: multiselect_cell,
        t.TABLE: table_cell,
        t.FILE: file_cell,
        t.IMAGE: file_cell,
        t.ATTACHMENT: attachment_cell,
        t.COLOR: color_cell,
        t.RATING: rating_cell,
        t.READONLY: text_cell,
        t.PHONE: text_cell,
        t.RICH_TEXT: rich_text_cell,
        t.BARCODE: text_cell,
        t.QR: text_cell,
        t.OBJECT: json_cell,
        t.ARRAY: array_cell,
        t.JSON: json_cell,
        t.FORMULA: text_cell,
        t.EXPRESSION: text_cell,
    }
    edits = {
        t.TEXT: _edit_renderer(t.TEXT, "text"),
        t.TEXTAREA: _edit_renderer(t.TEXTAREA, "textarea"),
        t.NUMBER: _edit_renderer(t.NUMBER, "number"),
        t.INTEGER: _edit_renderer(t.INTEGER, "number", step=1),
        t.DECIMAL: _edit_renderer(t.DECIMAL, "number", step=0.01),
        t.BOOLEAN: _edit_renderer(t.BOOLEAN, "checkbox"),
        t.EMAIL: _edit_renderer(t.EMAIL, "email"),
        t.URL: _edit_renderer(t.URL, "url"),
        t.PASSWORD: _edit_renderer(t.PASSWORD, "password"),
        t.DATE: _edit_renderer(t.DATE, "date"),
        t.DATETIME: _edit_renderer(t.DATETIME, "datetime-local"),
        t.TIME: _edit_renderer(t.TIME, "time"),
        t.SELECT: _edit_renderer(t.SELECT, "select", with_options=True),
        t.MULTISELECT: _edit_renderer(t.MULTISELECT, "multiselect", with_options=True),
        t.TABLE: table_edit,
        t.FILE: _edit_renderer(t.FILE, "file"),
        t.IMAGE: _edit_renderer(t.IMAGE, "image"),
        t.ATTACHMENT: _edit_renderer(t.ATTACHMENT, "attachment"),
        t.COLOR: _edit_renderer(t.COLOR, "color"),
        t.RATING: _edit_renderer(t.RATING, "rating", step=1),
        t.READONLY: _edit_renderer(t.READONLY, "text", read_only=True),
        t.PHONE: _edit_renderer(t.PHONE, "tel"),
        t.RICH_TEXT: _edit_renderer(t.RICH_TEXT, "richtext"),
        t.BARCODE: _edit_renderer(t.BARCODE, "barcode"),
        t.QR: _edit_renderer(t.QR, "qr"),
        t.OBJECT: _edit_renderer(t.OBJECT, "json"),
        t.ARRAY: _edit_renderer(t.ARRAY, "list"),
        t.JSON: _edit_renderer(t.JSON, "json"),
        t.FORMULA: _edit_renderer(t.FORMULA, "formula"),
        t.EXPRESSION: _edit_renderer(t.EXPRESSION, "formula"),
    }
    return {attribute_type: _renderer_set(cells[attribute_type], edits[attribute_type]) for attribute_type in AttributeType}
