"""Attribute auto-generation for a dataclass-to-DynamoDB mapper."""

from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .converters import (
    RAW_TYPES,
    ConverterRegistry,
    TypeConverter,
    default_registry,
    register_converter,
)
from .errors import (
    AwsError,
    ConditionFailedError,
    ConfigurationError,
    ConversionError,
    ItemgenPyError,
    MissingKeyError,
    NotFoundError,
    ValidationError,
)
from .generation import (
    WriteKind,
    apply,
    check_keys,
    generate_for_item,
    generate_for_updates,
    should_generate,
)
from .generators import AutoGenerator, GenerateStrategy, IdentifierGenerator, TimestampGenerator
from .model import (
    AttributeConverter,
    AttributeDefinition,
    GeneratorSpec,
    IndexDefinition,
    IndexSpec,
    KeyRole,
    ModelDefinition,
    ModelDefinitionError,
    auto_generated,
    auto_generated_key,
    auto_generated_timestamp,
    gsi,
    item_field,
    lsi,
    model_definition_for,
)

if TYPE_CHECKING:
    from .table import Table

_RC_VERSION = re.compile(r"^(?P<release>\d+\.\d+\.\d+)-rc\.?(?P<number>\d+)$")


def _version_file() -> str:
    """Release version from the bundled ``version.json``; ``0.0.0`` when unreadable."""
    try:
        version = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))["version"]
    except (OSError, ValueError, KeyError, TypeError):
        return "0.0.0"
    return version if isinstance(version, str) and version else "0.0.0"


def _pep440(version: str) -> str:
    # 1.2.3-rc.4 -> 1.2.3rc4
    match = _RC_VERSION.match(version)
    return f"{match['release']}rc{match['number']}" if match else version


__repo_version__ = _version_file()
__version__ = _pep440(__repo_version__)


def __getattr__(name: str) -> Any:
    # Table pulls in boto3; load it on first access.
    if name != "Table":
        raise AttributeError(name)
    from .table import Table

    return Table


__all__ = [
    "RAW_TYPES",
    "AttributeConverter",
    "AttributeDefinition",
    "AutoGenerator",
    "AwsError",
    "ConditionFailedError",
    "ConfigurationError",
    "ConversionError",
    "ConverterRegistry",
    "GenerateStrategy",
    "GeneratorSpec",
    "IdentifierGenerator",
    "IndexDefinition",
    "IndexSpec",
    "ItemgenPyError",
    "KeyRole",
    "MissingKeyError",
    "ModelDefinition",
    "ModelDefinitionError",
    "NotFoundError",
    "Table",
    "TimestampGenerator",
    "TypeConverter",
    "ValidationError",
    "WriteKind",
    "__repo_version__",
    "__version__",
    "apply",
    "auto_generated",
    "auto_generated_key",
    "auto_generated_timestamp",
    "check_keys",
    "default_registry",
    "generate_for_item",
    "generate_for_updates",
    "gsi",
    "item_field",
    "lsi",
    "model_definition_for",
    "register_converter",
    "should_generate",
]
