from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from .converters import (
    IDENTIFIER_TYPE,
    TIMESTAMP_TYPE,
    ConverterRegistry,
    TypeConverter,
    default_registry,
)
from .errors import ConfigurationError


class GenerateStrategy(StrEnum):
    """When a generator fires relative to the kind of write.

    CREATE populates the attribute on creation writes, and on update writes
    only when the current value is absent. ALWAYS regenerates on every write.
    """

    CREATE = "CREATE"
    ALWAYS = "ALWAYS"


@runtime_checkable
class AutoGenerator[T](Protocol):
    @property
    def strategy(self) -> GenerateStrategy: ...

    def generate(self, current_value: T | None) -> T: ...


def _utc_now() -> datetime:
    return datetime.now(UTC)


class IdentifierGenerator[T]:
    """Assigns a random UUID4, converted to the attribute's declared type.

    The strategy is fixed at CREATE so an assigned identifier is never
    replaced by a later update.
    """

    def __init__(
        self,
        declared_type: type[T],
        *,
        registry: ConverterRegistry | None = None,
        new_uuid: Callable[[], uuid.UUID] | None = None,
    ) -> None:
        self._converter: TypeConverter[uuid.UUID, T] = (registry or default_registry()).resolve(
            declared_type, IDENTIFIER_TYPE
        )
        self._new_uuid = new_uuid or uuid.uuid4

    @property
    def strategy(self) -> GenerateStrategy:
        return GenerateStrategy.CREATE

    def generate(self, current_value: T | None) -> T:
        return self._converter.convert(self._new_uuid())

    def __repr__(self) -> str:
        return f"IdentifierGenerator({self._converter.declared_type.__name__})"


class TimestampGenerator[T]:
    """Stamps the current UTC instant as a datetime, ISO-8601 string or epoch millis."""

    def __init__(
        self,
        declared_type: type[T],
        *,
        strategy: GenerateStrategy = GenerateStrategy.ALWAYS,
        registry: ConverterRegistry | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        if not isinstance(strategy, GenerateStrategy):
            raise ConfigurationError(f"invalid generate strategy: {strategy!r}", declared_type=declared_type)

        self._converter: TypeConverter[datetime, T] = (registry or default_registry()).resolve(
            declared_type, TIMESTAMP_TYPE
        )
        self._strategy = strategy
        self._now = now or _utc_now

    @property
    def strategy(self) -> GenerateStrategy:
        return self._strategy

    def generate(self, current_value: T | None) -> T:
        return self._converter.convert(self._now())

    def __repr__(self) -> str:
        return f"TimestampGenerator({self._converter.declared_type.__name__}, strategy={self._strategy})"


def validate_generator(generator: Any, *, attribute: str) -> AutoGenerator[Any]:
    if not isinstance(generator, AutoGenerator):
        raise ConfigurationError(
            f"generator for {attribute} must define strategy and generate(): {type(generator).__name__}"
        )
    if not isinstance(generator.strategy, GenerateStrategy):
        raise ConfigurationError(f"generator for {attribute} has invalid strategy: {generator.strategy!r}")
    return generator
