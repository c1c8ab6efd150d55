"""
Data model for attribute schemas and association rules.

All wire shapes use camelCase keys (the PIM backend's JSON) and snake_case
attributes in Python. Validation rule models are tagged by attribute type:
``rule_model_for(AttributeType.TABLE)`` is ``TableRules`` and so on. Rule
models forbid unknown keys, so a text attribute can never carry ``minRows``.

Usage:
    from pim_mcp.models import AttributeDefinition

    definition = AttributeDefinition.from_payload(payload)
    payload_again = definition.to_payload()
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model reading and writing camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Attribute types
# =============================================================================


class AttributeType(str, Enum):
    """Closed catalogue of attribute types."""

    TEXT = "text"
    TEXTAREA = "textarea"
    NUMBER = "number"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    EMAIL = "email"
    URL = "url"
    PASSWORD = "password"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    SELECT = "select"
    MULTISELECT = "multiselect"
    TABLE = "table"
    FILE = "file"
    IMAGE = "image"
    ATTACHMENT = "attachment"
    COLOR = "color"
    RATING = "rating"
    READONLY = "readonly"
    PHONE = "phone"
    RICH_TEXT = "rich_text"
    BARCODE = "barcode"
    QR = "qr"
    OBJECT = "object"
    ARRAY = "array"
    JSON = "json"
    FORMULA = "formula"
    EXPRESSION = "expression"

    @classmethod
    def parse(cls, value: Any) -> Optional["AttributeType"]:
        """Normalize a raw type tag; returns None for unknown tags."""
        if isinstance(value, AttributeType):
            return value
        if not isinstance(value, str):
            return None
        tag = value.strip().lower().replace("-", "_")
        if tag == "richtext":
            tag = "rich_text"
        try:
            return cls(tag)
        except ValueError:
            return None


# =============================================================================
# Validation rule models
# =============================================================================


class RuleModel(CamelModel):
    """Base for every type-specific validation rule model."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TextRules(RuleModel):
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    placeholder: Optional[str] = None


class RichTextRules(TextRules):
    allowed_tags: Optional[List[str]] = None
    max_text_length: Optional[int] = None


class NumberRules(RuleModel):
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None
    step: Optional[Union[int, float]] = None
    is_integer: Optional[bool] = None
    is_positive: Optional[bool] = None
    is_negative: Optional[bool] = None
    is_zero: Optional[bool] = None


class DateRules(RuleModel):
    min_date: Optional[str] = None
    max_date: Optional[str] = None


class SelectRules(RuleModel):
    min_selections: Optional[int] = None
    max_selections: Optional[int] = None


class FileRules(RuleModel):
    max_file_size: Optional[int] = None
    allowed_extensions: Optional[List[str]] = None
    max_files: Optional[int] = None
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    aspect_ratio: Optional[str] = None


class RatingRules(RuleModel):
    min_rating: Optional[Union[int, float]] = None
    max_rating: Optional[Union[int, float]] = None
    allow_half_stars: Optional[bool] = None


class ColorRules(RuleModel):
    color_format: Optional[Literal["hex", "rgb", "hsl"]] = None


class ArrayRules(RuleModel):
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    unique_items: Optional[bool] = None
    item_type: Optional[str] = None
    allow_empty: Optional[bool] = None


class ObjectRules(RuleModel):
    required_properties: Optional[List[str]] = None
    json_schema: Optional[str] = None
    strict_mode: Optional[bool] = None
    allow_empty_object: Optional[bool] = None


class TableColumn(CamelModel):
    """One column of a table-typed attribute."""

    name: str
    type: Literal["text", "number", "date", "select"] = "text"
    required: bool = False
    options: Optional[List[str]] = None
    width: Optional[int] = None


class TableRules(RuleModel):
    columns: List[TableColumn] = Field(default_factory=list)
    min_rows: Optional[int] = None
    max_rows: Optional[int] = None
    allow_add_rows: Optional[bool] = None
    allow_delete_rows: Optional[bool] = None
    allow_edit_rows: Optional[bool] = None


class FormulaRules(RuleModel):
    variables: Optional[List[str]] = None
    functions: Optional[List[str]] = None
    default_formula: Optional[str] = None
    require_valid_syntax: Optional[bool] = None
    allow_empty_formula: Optional[bool] = None


class ReadonlyRules(RuleModel):
    default_value: Any = None


class EmptyRules(RuleModel):
    """Types that support no validation rules."""


RULE_MODELS = {
    AttributeType.TEXT: TextRules,
    AttributeType.TEXTAREA: TextRules,
    AttributeType.EMAIL: TextRules,
    AttributeType.URL: TextRules,
    AttributeType.PASSWORD: TextRules,
    AttributeType.PHONE: TextRules,
    AttributeType.RICH_TEXT: RichTextRules,
    AttributeType.NUMBER: NumberRules,
    AttributeType.INTEGER: NumberRules,
    AttributeType.DECIMAL: NumberRules,
    AttributeType.DATE: DateRules,
    AttributeType.DATETIME: DateRules,
    AttributeType.SELECT: SelectRules,
    AttributeType.MULTISELECT: SelectRules,
    AttributeType.FILE: FileRules,
    AttributeType.IMAGE: FileRules,
    AttributeType.ATTACHMENT: FileRules,
    AttributeType.RATING: RatingRules,
    AttributeType.COLOR: ColorRules,
    AttributeType.ARRAY: ArrayRules,
    AttributeType.OBJECT: ObjectRules,
    AttributeType.TABLE: TableRules,
    AttributeType.FORMULA: FormulaRules,
    AttributeType.READONLY: ReadonlyRules,
    AttributeType.BOOLEAN: EmptyRules,
    AttributeType.TIME: EmptyRules,
    AttributeType.JSON: EmptyRules,
    AttributeType.EXPRESSION: EmptyRules,
    AttributeType.BARCODE: EmptyRules,
    AttributeType.QR: EmptyRules,
}

AnyRules = Union[
    TableRules,
    RichTextRules,
    TextRules,
    NumberRules,
    DateRules,
    SelectRules,
    FileRules,
    RatingRules,
    ColorRules,
    ArrayRules,
    ObjectRules,
    FormulaRules,
    ReadonlyRules,
    EmptyRules,
]


def rule_model_for(attribute_type: Any) -> type:
    """Return the rule model class for a type tag (TextRules when unknown)."""
    parsed = AttributeType.parse(attribute_type)
    if parsed is None:
        return TextRules
    return RULE_MODELS[parsed]


def parse_rules(attribute_type: Any, raw: Optional[Dict[str, Any]]) -> RuleModel:
    """Build the rule model for ``attribute_type`` from a raw dict."""
    return rule_model_for(attribute_type).model_validate(raw or {})


# =============================================================================
# Attribute definitions
# =============================================================================


class TranslationObject(CamelModel):
    """Localized text as stored by the localization service."""

    id: Optional[str] = Field(default=None, alias="_id")
    key: Optional[str] = None
    namespace: Optional[str] = None
    translations: Dict[str, str] = Field(default_factory=dict)


LocalizedText = Union[str, TranslationObject]


class AttributeOption(CamelModel):
    """Selectable option entity of a select/multiselect attribute."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    id: Optional[str] = Field(default=None, alias="_id")
    code: Optional[str] = None
    name: Optional[LocalizedText] = None
    value: Optional[str] = None
    label: Optional[str] = None

    @property
    def key(self) -> Optional[str]:
        return self.id or self.code or self.value


class AttributeDefinition(CamelModel):
    """A named, typed field on an entity. ``type`` cannot change after creation."""

    id: Optional[str] = Field(default=None, alias="_id")
    code: str
    type: AttributeType = Field(frozen=True)
    name: Optional[LocalizedText] = None
    description: Optional[LocalizedText] = None
    is_required: bool = False
    options: List[Union[str, AttributeOption]] = Field(default_factory=list)
    validations: Optional[AnyRules] = None

    @model_validator(mode="before")
    @classmethod
    def _shape_validations(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        attr_type = AttributeType.parse(data.get("type"))
        if attr_type is not None:
            data["type"] = attr_type
        raw = data.get("validations")
        if attr_type is not None and isinstance(raw, dict):
            data["validations"] = parse_rules(attr_type, raw)
        return data

    @model_validator(mode="after")
    def _check_validations_shape(self) -> "AttributeDefinition":
        if self.validations is not None:
            expected = rule_model_for(self.type)
            if type(self.validations) is not expected:
                raise ValueError(
                    f"validations of type {type(self.validations).__name__} "
                    f"do not match attribute type '{self.type.value}' "
                    f"(expected {expected.__name__})"
                )
        return self

    @property
    def rules(self) -> RuleModel:
        """Validation rules, an empty rule model when none were authored."""
        if self.validations is None:
            return rule_model_for(self.type)()
        return self.validations

    def option_keys(self) -> List[str]:
        keys = []
        for option in self.options:
            if isinstance(option, str):
                keys.append(option)
            elif option.key is not None:
                keys.append(option.key)
        return keys

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AttributeDefinition":
        return cls.model_validate(payload)


# =============================================================================
# Entities
# =============================================================================


class Entity(CamelModel):
    """An item that can be displayed or linked (candidate pool member)."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    id: str = Field(alias="_id")
    code: Optional[str] = None
    name: Optional[LocalizedText] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    item_type: Any = None
    match_score: Optional[float] = None
    is_active: bool = True


# =============================================================================
# Associations
# =============================================================================


class AssociationKind(str, Enum):
    """Cardinality kind of a relationship slot."""

    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_ONE = "many-to-one"
    MANY_TO_MANY = "many-to-many"

    @property
    def is_to_one(self) -> bool:
        return self in (AssociationKind.ONE_TO_ONE, AssociationKind.MANY_TO_ONE)


class Cardinality(CamelModel):
    min: Optional[int] = None
    max: Optional[int] = None


class AssociationUiConfig(CamelModel):
    show_in_list: Optional[bool] = None
    show_in_detail: Optional[bool] = None
    allow_inline_create: Optional[bool] = None
    allow_inline_edit: Optional[bool] = None
    display_mode: Optional[Literal["dropdown", "modal", "popup", "inline"]] = None


class AssociationRule(CamelModel):
    """Declarative rule describing one relationship slot of an entity type."""

    target_item_type_code: str
    target_item_type_name: Optional[str] = None
    association: AssociationKind
    cardinality: Cardinality = Field(default_factory=Cardinality)
    is_required: bool = False
    cascade_delete: bool = False
    display_field: Optional[str] = None
    searchable_fields: List[str] = Field(default_factory=list)
    filter_by: Dict[str, Any] = Field(default_factory=dict)
    validation_rules: Dict[str, Any] = Field(default_factory=dict)
    ui_config: Optional[AssociationUiConfig] = None

    @property
    def key(self) -> str:
        return f"{self.target_item_type_code}_{self.association.value}"

    @property
    def is_to_one(self) -> bool:
        return self.association.is_to_one

    @property
    def effective_max(self) -> Optional[int]:
        # A max of 0 means "unlimited" on the wire
        if self.is_to_one:
            return 1
        return self.cardinality.max or None

    @property
    def display_label(self) -> str:
        return self.target_item_type_name or self.target_item_type_code


class RelationshipStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    ARCHIVED = "archived"


class RelationshipType(CamelModel):
    """Directional link-kind catalogue entry."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    id: Optional[str] = Field(default=None, alias="_id")
    code: str
    name: Optional[LocalizedText] = None
    description: Optional[LocalizedText] = None
    is_directional: bool = True
    relationship_type: Optional[AssociationKind] = None
    allowed_source_types: List[str] = Field(default_factory=list)
    allowed_target_types: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Relationship(CamelModel):
    """A concrete link between two entities."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    id: Optional[str] = Field(default=None, alias="_id")
    association_id: str
    source_entity_id: str
    source_entity_type: str
    target_entity_id: str
    target_entity_type: str
    status: RelationshipStatus = RelationshipStatus.ACTIVE
    priority: Optional[int] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    start_date: Optional[str] = None
    end_date: Optional[str] = None


# =============================================================================
# Collaborator responses
# =============================================================================


class ValidationStatus(CamelModel):
    is_valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class AssociationMetadata(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    available_count: int = 0
    selected_count: int = 0
    can_add_more: bool = True
    validation_status: ValidationStatus = Field(default_factory=ValidationStatus)


class CandidatePage(CamelModel):
    items: List[Entity] = Field(default_factory=list)
    total: int = 0


class AssociationOutcome(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    success: bool
    message: Optional[str] = None
