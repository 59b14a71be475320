from __future__ import annotations

import threading
import types
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from enum import StrEnum
from typing import Any, Literal, Protocol, Union, cast, get_args, get_origin, get_type_hints

from .converters import ConverterRegistry, default_registry
from .errors import ConfigurationError
from .generators import (
    AutoGenerator,
    GenerateStrategy,
    IdentifierGenerator,
    TimestampGenerator,
    validate_generator,
)

_METADATA_KEY = "itemgen"


class ModelDefinitionError(ValueError):
    pass


class AttributeConverter(Protocol):
    def to_dynamodb(self, value: Any) -> Any: ...

    def from_dynamodb(self, value: Any) -> Any: ...


class KeyRole(StrEnum):
    NONE = "NONE"
    PARTITION_KEY = "PARTITION_KEY"
    SORT_KEY = "SORT_KEY"
    INDEX_KEY = "INDEX_KEY"

    @property
    def is_key(self) -> bool:
        return self is not KeyRole.NONE

    @property
    def is_primary(self) -> bool:
        return self in (KeyRole.PARTITION_KEY, KeyRole.SORT_KEY)


@dataclass(frozen=True)
class GeneratorSpec:
    """Deferred generator binding, built once per attribute when the model is defined."""

    generator: Callable[..., Any]
    options: Mapping[str, Any] = field(default_factory=dict)

    def build(self, declared_type: Any, *, registry: ConverterRegistry, attribute: str) -> AutoGenerator[Any]:
        try:
            generator = self.generator(declared_type, registry=registry, **self.options)
        except TypeError as err:
            raise ConfigurationError(
                f"cannot construct generator for {attribute}: {err}", declared_type=declared_type
            ) from err
        return validate_generator(generator, attribute=attribute)


def auto_generated_key() -> GeneratorSpec:
    return GeneratorSpec(generator=IdentifierGenerator)


def auto_generated_timestamp(strategy: GenerateStrategy = GenerateStrategy.ALWAYS) -> GeneratorSpec:
    return GeneratorSpec(generator=TimestampGenerator, options={"strategy": strategy})


def auto_generated(generator: Callable[..., Any], **options: Any) -> GeneratorSpec:
    """Bind a custom generator.

    ``generator`` is called as ``generator(declared_type, registry=registry, **options)``
    and must return an object exposing ``strategy`` and ``generate(current_value)``.
    """
    if not callable(generator):
        raise ConfigurationError(f"generator must be callable: {generator!r}")
    return GeneratorSpec(generator=generator, options=dict(options))


@dataclass(frozen=True)
class AttributeDefinition:
    python_name: str
    attribute_name: str
    roles: tuple[str, ...] = ()
    omitempty: bool = False
    declared_type: Any = Any
    key_role: KeyRole = KeyRole.NONE
    converter: AttributeConverter | None = None
    generator: AutoGenerator[Any] | None = field(default=None, compare=False)


IndexKind = Literal["GSI", "LSI"]


@dataclass(frozen=True)
class IndexSpec:
    """Secondary index declared by field names; ``partition=None`` means the table pk."""

    name: str
    kind: IndexKind
    partition: str | None
    sort: str | None = None

    def key_fields(self) -> tuple[str, ...]:
        return tuple(name for name in (self.partition, self.sort) if name is not None)


@dataclass(frozen=True)
class IndexDefinition:
    name: str
    kind: IndexKind
    partition: str
    sort: str | None = None


def gsi(name: str, *, partition: str, sort: str | None = None) -> IndexSpec:
    return IndexSpec(name=name, kind="GSI", partition=partition, sort=sort)


def lsi(name: str, *, sort: str) -> IndexSpec:
    return IndexSpec(name=name, kind="LSI", partition=None, sort=sort)


def item_field(
    *,
    name: str | None = None,
    roles: Sequence[str] = (),
    omitempty: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    auto_generated: GeneratorSpec | None = None,
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    """Declare a mapped dataclass field.

    Fields bound to a generator through ``auto_generated`` default to None so
    records can be built without them.
    """
    if default is not MISSING and default_factory is not MISSING:
        raise ValueError("item_field: cannot set both default and default_factory")
    if auto_generated is not None:
        if not isinstance(auto_generated, GeneratorSpec):
            raise ValueError("item_field: auto_generated must be a GeneratorSpec")
        if default is MISSING and default_factory is MISSING:
            default = None

    metadata = {
        _METADATA_KEY: {
            "name": name,
            "roles": tuple(roles),
            "omitempty": omitempty,
            "converter": converter,
            "ignore": ignore,
            "auto_generated": auto_generated,
        }
    }
    return field(default=default, default_factory=default_factory, metadata=metadata)


def _strip_none(annotation: Any) -> Any:
    if get_origin(annotation) not in (Union, types.UnionType):
        return annotation
    members = [arg for arg in get_args(annotation) if arg is not type(None)]
    return members[0] if len(members) == 1 else annotation


def _declared_types(model_type: type[Any]) -> dict[str, Any]:
    try:
        hints = get_type_hints(model_type)
    except (NameError, TypeError):
        hints = dict(getattr(model_type, "__annotations__", {}))
    return {name: _strip_none(hint) for name, hint in hints.items()}


def _key_role(python_name: str, roles: tuple[str, ...], index_fields: set[str]) -> KeyRole:
    if "pk" in roles:
        return KeyRole.PARTITION_KEY
    if "sk" in roles:
        return KeyRole.SORT_KEY
    if python_name in index_fields or any(role.startswith(("index_pk:", "index_sk:")) for role in roles):
        return KeyRole.INDEX_KEY
    return KeyRole.NONE


def _single(role: str, names: list[str], *, required: bool) -> str | None:
    if len(names) > 1 or (required and not names):
        expected = "exactly one" if required else "at most one"
        raise ModelDefinitionError(f"model must define {expected} {role} field (found {len(names)})")
    return names[0] if names else None


def _resolve_indexes(
    indexes: Iterable[IndexSpec],
    attributes: Mapping[str, AttributeDefinition],
    pk: AttributeDefinition,
) -> tuple[IndexDefinition, ...]:
    resolved: dict[str, IndexDefinition] = {}
    for spec in indexes:
        if spec.name in resolved:
            raise ModelDefinitionError(f"duplicate index name: {spec.name}")
        if spec.kind not in ("GSI", "LSI"):
            raise ModelDefinitionError(f"unsupported index type: {spec.kind}")

        partition = spec.partition or pk.python_name
        if spec.kind == "LSI" and partition != pk.python_name:
            raise ModelDefinitionError(f"index {spec.name}: LSI partition must be the table pk ({pk.python_name})")

        for role, field_name in (("partition", partition), ("sort", spec.sort)):
            if field_name is not None and field_name not in attributes:
                raise ModelDefinitionError(f"index {spec.name}: unknown {role} field: {field_name}")

        resolved[spec.name] = IndexDefinition(
            name=spec.name,
            kind=spec.kind,
            partition=attributes[partition].attribute_name,
            sort=attributes[spec.sort].attribute_name if spec.sort is not None else None,
        )
    return tuple(resolved.values())


@dataclass(frozen=True)
class ModelDefinition[T]:
    model_type: type[T]
    table_name: str | None
    pk: AttributeDefinition
    sk: AttributeDefinition | None
    attributes: Mapping[str, AttributeDefinition]
    indexes: tuple[IndexDefinition, ...]

    @property
    def generated_attributes(self) -> tuple[AttributeDefinition, ...]:
        return tuple(attr for attr in self.attributes.values() if attr.generator is not None)

    @property
    def key_attributes(self) -> tuple[AttributeDefinition, ...]:
        return tuple(attr for attr in self.attributes.values() if attr.key_role.is_key)

    @classmethod
    def from_dataclass(
        cls,
        model_type: type[T],
        *,
        table_name: str | None = None,
        indexes: Sequence[IndexSpec] = (),
        converters: ConverterRegistry | None = None,
    ) -> ModelDefinition[T]:
        """Map ``model_type`` and build every declared generator up front.

        Converter lookups happen here, so an unsupported declared type fails
        with ``ConfigurationError`` before any record is written.
        """
        if not is_dataclass(model_type):
            raise ModelDefinitionError("model_type must be a dataclass")

        registry = converters if converters is not None else default_registry()
        declared_types = _declared_types(model_type)
        index_fields = {name for spec in indexes for name in spec.key_fields()}

        attributes: dict[str, AttributeDefinition] = {}
        for dc_field in fields(model_type):
            opts = cast(dict[str, Any], dc_field.metadata.get(_METADATA_KEY, {}))
            if opts.get("ignore"):
                continue

            roles = tuple(opts.get("roles", ()))
            declared_type = declared_types.get(dc_field.name, Any)
            key_role = _key_role(dc_field.name, roles, index_fields)

            generator: AutoGenerator[Any] | None = None
            generator_spec = cast(GeneratorSpec | None, opts.get("auto_generated"))
            if generator_spec is not None:
                generator = generator_spec.build(declared_type, registry=registry, attribute=dc_field.name)
                if generator.strategy is GenerateStrategy.ALWAYS and key_role.is_primary:
                    raise ConfigurationError(
                        f"primary key attribute cannot use the ALWAYS strategy: {dc_field.name}",
                        declared_type=declared_type,
                    )

            attributes[dc_field.name] = AttributeDefinition(
                python_name=dc_field.name,
                attribute_name=opts.get("name") or dc_field.name,
                roles=roles,
                omitempty=bool(opts.get("omitempty")),
                declared_type=declared_type,
                key_role=key_role,
                converter=opts.get("converter"),
                generator=generator,
            )

        pk_name = _single("pk", [a.python_name for a in attributes.values() if "pk" in a.roles], required=True)
        sk_name = _single("sk", [a.python_name for a in attributes.values() if "sk" in a.roles], required=False)
        pk = attributes[cast(str, pk_name)]

        return cls(
            model_type=model_type,
            table_name=table_name,
            pk=pk,
            sk=attributes[sk_name] if sk_name is not None else None,
            attributes=attributes,
            indexes=_resolve_indexes(indexes, attributes, pk),
        )


_definitions: dict[tuple[Any, ...], ModelDefinition[Any]] = {}
_definitions_lock = threading.Lock()


def model_definition_for[T](
    model_type: type[T],
    *,
    table_name: str | None = None,
    indexes: Sequence[IndexSpec] = (),
    converters: ConverterRegistry | None = None,
) -> ModelDefinition[T]:
    """Return the cached definition for ``model_type``, building it on first use."""
    key = (model_type, table_name, tuple(indexes), converters)
    with _definitions_lock:
        cached = _definitions.get(key)
        if cached is None:
            cached = ModelDefinition.from_dataclass(
                model_type, table_name=table_name, indexes=indexes, converters=converters
            )
            _definitions[key] = cached
    return cast(ModelDefinition[T], cached)
