"""Localized label and description resolution.

Names and descriptions are either plain strings (older records) or translation
objects carrying one text per language. Lookup order is: requested language,
fallback language, first available translation. Entity names finally fall back
to the entity's code and then its id, so a label is always available.
"""

from typing import Any, Optional

DEFAULT_LANGUAGE = "en"


def _field(entity: Any, name: str) -> Any:
    if entity is None:
        return None
    if isinstance(entity, dict):
        if name == "id":
            return entity.get("_id", entity.get("id"))
        return entity.get(name)
    return getattr(entity, name, None)


def get_translated_text(
    translation: Any, language: str, fallback_language: str = DEFAULT_LANGUAGE
) -> str:
    if translation is None:
        return ""
    if isinstance(translation, str):
        return translation
    translations = _field(translation, "translations") or {}
    if not isinstance(translations, dict):
        return ""
    if translations.get(language):
        return translations[language]
    if translations.get(fallback_language):
        return translations[fallback_language]
    for text in translations.values():
        if text:
            return text
    return ""


def get_entity_name(
    entity: Any,
    language: str = DEFAULT_LANGUAGE,
    fallback_language: str = DEFAULT_LANGUAGE,
) -> str:
    """Human label for an entity, never empty when the entity has a code or id."""
    name = get_translated_text(_field(entity, "name"), language, fallback_language)
    if name:
        return name
    for key in ("code", "id"):
        value = _field(entity, key)
        if value:
            return str(value)
    return ""


def get_entity_description(
    entity: Any,
    language: str = DEFAULT_LANGUAGE,
    fallback_language: str = DEFAULT_LANGUAGE,
) -> str:
    return get_translated_text(
        _field(entity, "description"), language, fallback_language
    )


def option_label(
    option: Any, language: str = DEFAULT_LANGUAGE
) -> Optional[str]:
    """Display label of a select option (string or option entity)."""
    if option is None:
        return None
    if isinstance(option, str):
        return option
    label = _field(option, "label")
    if label:
        return str(label)
    name = get_entity_name(option, language)
    if name:
        return name
    value = _field(option, "value")
    return str(value) if value is not None else None
