"""Decides, per mapped attribute and per write, whether a value is generated.

Each (attribute, write) pair is decided once: the attribute's generator
strategy is combined with the write kind, and a generated value replaces the
current one only when the pair is eligible. Conversion failures propagate.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import Any, cast

from .errors import MissingKeyError, ValidationError
from .generators import AutoGenerator, GenerateStrategy
from .model import AttributeDefinition, ModelDefinition

logger = logging.getLogger(__name__)


class WriteKind(StrEnum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"


def _is_absent(value: Any) -> bool:
    return value is None


def _require_present(attribute: AttributeDefinition, current_value: Any, kind: WriteKind) -> None:
    if (
        kind is WriteKind.CREATE
        and attribute.key_role.is_key
        and attribute.generator is None
        and _is_absent(current_value)
    ):
        raise MissingKeyError(attribute=attribute.python_name, key_role=attribute.key_role.value)


def should_generate(attribute: AttributeDefinition, current_value: Any, kind: WriteKind) -> bool:
    _require_present(attribute, current_value, kind)

    generator = attribute.generator
    if generator is None:
        return False

    if generator.strategy is GenerateStrategy.ALWAYS:
        return True
    if kind is WriteKind.CREATE:
        return True
    return _is_absent(current_value)


def apply(attribute: AttributeDefinition, current_value: Any, kind: WriteKind) -> Any:
    generator = attribute.generator
    if not should_generate(attribute, current_value, kind) or generator is None:
        logger.debug("skip generation: attribute=%s kind=%s", attribute.python_name, kind)
        return current_value

    value = generator.generate(current_value)
    logger.debug(
        "generated value: attribute=%s kind=%s strategy=%s",
        attribute.python_name,
        kind,
        generator.strategy,
    )
    return value


def check_keys(model: ModelDefinition[Any], item: Any, kind: WriteKind) -> None:
    for attribute in model.key_attributes:
        _require_present(attribute, getattr(item, attribute.python_name), kind)


def generate_for_item[T](model: ModelDefinition[T], item: T, kind: WriteKind) -> T:
    """Return ``item`` with every eligible generated attribute filled in.

    Key attributes are checked before anything is generated. The input is
    never mutated; a new instance is returned when at least one value changed.
    """
    if not dataclasses.is_dataclass(item) or isinstance(item, type):
        raise ValidationError("item must be a dataclass instance")

    check_keys(model, item, kind)

    changes: dict[str, Any] = {}
    for attribute in model.generated_attributes:
        current = getattr(item, attribute.python_name)
        value = apply(attribute, current, kind)
        if value is not current:
            changes[attribute.python_name] = value

    if not changes:
        return item
    return dataclasses.replace(item, **changes)


def generate_for_updates(model: ModelDefinition[Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Apply update-oriented generation to a partial set of field updates.

    Fields named in ``updates`` are decided with their given value, so an
    explicit None triggers CREATE-strategy generation. Unnamed ALWAYS fields
    are added; unnamed CREATE fields are left untouched.
    """
    out = dict(updates)
    for attribute in model.generated_attributes:
        name = attribute.python_name
        if name in out:
            out[name] = apply(attribute, out[name], WriteKind.UPDATE)
            continue

        generator = cast(AutoGenerator[Any], attribute.generator)
        if generator.strategy is GenerateStrategy.ALWAYS:
            out[name] = apply(attribute, None, WriteKind.UPDATE)
    return out
