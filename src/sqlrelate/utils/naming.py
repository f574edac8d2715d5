"""Naming conventions used to derive defaults from identifiers.

Association targets, foreign keys and table names are all derived from
names when not configured explicitly:

    >>> default_target_name("dog")
    'Dog'
    >>> default_foreign_key("dog")
    'dog_id'
    >>> tableize("Person")
    'people'

The inflection rules cover regular English nouns plus a short list of
irregular ones; anything else should be configured explicitly.
"""

import re

_IRREGULAR: dict[str, str] = {
    "person": "people",
    "man": "men",
    "woman": "women",
    "child": "children",
    "foot": "feet",
    "tooth": "teeth",
    "goose": "geese",
    "mouse": "mice",
    "ox": "oxen",
}
_IRREGULAR_SINGULAR = {plural: singular for singular, plural in _IRREGULAR.items()}

_UNCOUNTABLE = frozenset(
    {"data", "equipment", "fish", "information", "money", "rice", "series", "sheep", "species"}
)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def _split_last_word(word: str) -> tuple[str, str]:
    head, sep, last = word.rpartition("_")
    return head + sep, last


def _match_case(template: str, word: str) -> str:
    return word[:1].upper() + word[1:] if template[:1].isupper() else word


def pluralize(word: str) -> str:
    """Return the plural form of the last word in a snake_case identifier."""
    head, last = _split_last_word(word)
    lower = last.lower()
    if not lower or lower in _UNCOUNTABLE:
        return word
    if lower in _IRREGULAR:
        return head + _match_case(last, _IRREGULAR[lower])
    if lower in _IRREGULAR_SINGULAR:
        return word
    if re.search(r"[^aeiou]y$", lower):
        return head + last[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", lower):
        return head + last + "es"
    return head + last + "s"


def singularize(word: str) -> str:
    """Return the singular form of the last word in a snake_case identifier."""
    head, last = _split_last_word(word)
    lower = last.lower()
    if not lower or lower in _UNCOUNTABLE:
        return word
    if lower in _IRREGULAR_SINGULAR:
        return head + _match_case(last, _IRREGULAR_SINGULAR[lower])
    if lower in _IRREGULAR:
        return word
    if re.search(r"[^aeiou]ies$", lower):
        return head + last[:-3] + "y"
    if re.search(r"(ss|x|z|ch|sh)es$", lower):
        return head + last[:-2]
    if lower.endswith("ss") or lower.endswith("us") or lower.endswith("is"):
        return word
    if lower.endswith("s"):
        return head + last[:-1]
    return word


def camelize(word: str) -> str:
    """Convert a snake_case identifier to PascalCase.

    >>> camelize("dog_show")
    'DogShow'
    """
    return "".join(part[:1].upper() + part[1:] for part in word.split("_") if part)


def underscore(word: str) -> str:
    """Convert a PascalCase or camelCase identifier to snake_case.

    >>> underscore("DogShow")
    'dog_show'
    """
    return _CAMEL_BOUNDARY.sub("_", word).replace("-", "_").lower()


def tableize(class_name: str) -> str:
    """Derive a table name from an entity class name."""
    return pluralize(underscore(class_name))


def default_target_name(association_name: str) -> str:
    """Derive the target class name for a belongs-to association."""
    return camelize(singularize(association_name))


def default_foreign_key(association_name: str) -> str:
    """Derive the foreign key field for a belongs-to association."""
    return f"{association_name}_id"
