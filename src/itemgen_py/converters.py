from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from .errors import ConfigurationError, ConversionError

logger = logging.getLogger(__name__)

IDENTIFIER_TYPE: type[uuid.UUID] = uuid.UUID
TIMESTAMP_TYPE: type[datetime] = datetime
EPOCH_TYPE: type[int] = int

RAW_TYPES: frozenset[type[Any]] = frozenset({IDENTIFIER_TYPE, TIMESTAMP_TYPE, EPOCH_TYPE})

# DynamoDB numbers carry at most 38 significant digits.
MAX_DYNAMODB_NUMBER = 10**38

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _type_name(tp: Any) -> str:
    return getattr(tp, "__qualname__", None) or repr(tp)


@dataclass(frozen=True)
class TypeConverter[R, D]:
    raw_type: type[R]
    declared_type: type[D]
    func: Callable[[R], D]

    def convert(self, value: R) -> D:
        try:
            out = self.func(value)
        except ConversionError:
            raise
        except Exception as err:
            raise ConversionError(
                f"cannot convert {_type_name(self.raw_type)} to {_type_name(self.declared_type)}: {err}",
                raw_type=self.raw_type,
                declared_type=self.declared_type,
            ) from err

        if type(out) is not self.declared_type and (
            not isinstance(out, self.declared_type) or isinstance(out, bool)
        ):
            raise ConversionError(
                f"converter for {_type_name(self.raw_type)} -> {_type_name(self.declared_type)} "
                f"returned {type(out).__name__}",
                raw_type=self.raw_type,
                declared_type=self.declared_type,
            )
        return out


class ConverterRegistry:
    def __init__(self, *, builtins: bool = True) -> None:
        self._converters: dict[tuple[type[Any], type[Any]], TypeConverter[Any, Any]] = {}
        self._frozen = False
        self._lock = threading.Lock()
        if builtins:
            register_builtin_converters(self)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self,
        raw_type: type[Any],
        declared_type: type[Any],
        func: Callable[[Any], Any],
        *,
        replace: bool = False,
    ) -> None:
        if raw_type not in RAW_TYPES:
            raise ConfigurationError(
                f"unsupported raw type: {_type_name(raw_type)}",
                raw_type=raw_type,
                declared_type=declared_type,
            )
        if not isinstance(declared_type, type):
            raise ConfigurationError(
                f"declared type must be a class: {declared_type!r}",
                raw_type=raw_type,
                declared_type=declared_type,
            )
        if not callable(func):
            raise ConfigurationError("converter must be callable", raw_type=raw_type, declared_type=declared_type)

        key = (raw_type, declared_type)
        with self._lock:
            if self._frozen:
                raise ConfigurationError(
                    "converter registry is frozen; register converters before building models",
                    raw_type=raw_type,
                    declared_type=declared_type,
                )
            if key in self._converters and not replace:
                raise ConfigurationError(
                    f"converter already registered: {_type_name(raw_type)} -> {_type_name(declared_type)}",
                    raw_type=raw_type,
                    declared_type=declared_type,
                )
            self._converters[key] = TypeConverter(raw_type=raw_type, declared_type=declared_type, func=func)

    def freeze(self) -> None:
        with self._lock:
            if not self._frozen:
                self._frozen = True
                logger.debug("converter registry frozen with %d converters", len(self._converters))

    def resolve(self, declared_type: Any, raw_type: type[Any]) -> TypeConverter[Any, Any]:
        if not self._frozen:
            self.freeze()

        converter = self._converters.get((raw_type, declared_type))
        if converter is None:
            raise ConfigurationError(
                f"no converter registered for {_type_name(raw_type)} -> {_type_name(declared_type)}",
                raw_type=raw_type,
                declared_type=declared_type,
            )
        logger.debug("resolved converter %s -> %s", _type_name(raw_type), _type_name(declared_type))
        return converter

    def registered_pairs(self) -> list[tuple[type[Any], type[Any]]]:
        return list(self._converters)


def _check_number_range(value: int) -> int:
    if abs(value) >= MAX_DYNAMODB_NUMBER:
        raise ValueError(f"{value} is outside the DynamoDB number range")
    return value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("timestamp must be timezone-aware")
    return value.astimezone(UTC)


def timestamp_to_iso8601(value: datetime) -> str:
    utc = _as_utc(value)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def iso8601_to_timestamp(value: str) -> datetime:
    return _as_utc(datetime.fromisoformat(value))


def timestamp_to_epoch_millis(value: datetime) -> int:
    delta = _as_utc(value) - _EPOCH
    return _check_number_range(
        (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
    )


def epoch_millis_to_timestamp(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


def register_builtin_converters(registry: ConverterRegistry) -> None:
    registry.register(IDENTIFIER_TYPE, str, str)
    registry.register(IDENTIFIER_TYPE, bytes, lambda u: u.bytes)
    registry.register(IDENTIFIER_TYPE, uuid.UUID, lambda u: u)

    registry.register(TIMESTAMP_TYPE, datetime, _as_utc)
    registry.register(TIMESTAMP_TYPE, str, timestamp_to_iso8601)
    registry.register(TIMESTAMP_TYPE, int, timestamp_to_epoch_millis)

    registry.register(EPOCH_TYPE, int, _check_number_range)
    registry.register(EPOCH_TYPE, datetime, epoch_millis_to_timestamp)


_default_registry: ConverterRegistry | None = None
_default_registry_lock = threading.Lock()


def default_registry() -> ConverterRegistry:
    global _default_registry
    if _default_registry is None:
        with _default_registry_lock:
            if _default_registry is None:
                _default_registry = ConverterRegistry()
    return _default_registry


def register_converter(
    raw_type: type[Any],
    declared_type: type[Any],
    func: Callable[[Any], Any],
    *,
    replace: bool = False,
) -> None:
    default_registry().register(raw_type, declared_type, func, replace=replace)
