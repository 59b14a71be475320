from __future__ import annotations

from typing import Any


class ItemgenPyError(Exception):
    pass


class ConditionFailedError(ItemgenPyError):
    pass


class NotFoundError(ItemgenPyError):
    pass


class ValidationError(ItemgenPyError):
    pass


class ConfigurationError(ItemgenPyError):
    def __init__(
        self,
        message: str,
        *,
        raw_type: type[Any] | None = None,
        declared_type: Any = None,
    ) -> None:
        super().__init__(message)
        self.raw_type = raw_type
        self.declared_type = declared_type


class MissingKeyError(ValidationError):
    def __init__(self, *, attribute: str, key_role: str) -> None:
        super().__init__(f"{key_role} attribute has no value and no generator: {attribute}")
        self.attribute = attribute
        self.key_role = key_role


class ConversionError(ItemgenPyError):
    def __init__(self, message: str, *, raw_type: type[Any], declared_type: type[Any]) -> None:
        super().__init__(message)
        self.raw_type = raw_type
        self.declared_type = declared_type


class AwsError(ItemgenPyError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
