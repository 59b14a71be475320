from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any

import pytest

from itemgen_py.converters import ConverterRegistry
from itemgen_py.errors import ConfigurationError
from itemgen_py.generators import GenerateStrategy, IdentifierGenerator, TimestampGenerator
from itemgen_py.model import (
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


@dataclass(frozen=True)
class User:
    pk: str = item_field(name="PK", roles=["pk"])
    sk: str = item_field(name="SK", roles=["sk"])
    email_hash: str = item_field(name="emailHash", omitempty=True)
    created_at: str = item_field(name="createdAt", roles=["created_at"])
    blob: bytes = item_field(name="blob", omitempty=True, default=b"")
    tenant: str = item_field(name="tenant", roles=["index_pk:by-tenant"], default="")
    ignored: str = item_field(ignore=True, default="ignored")


@dataclass(frozen=True)
class Event:
    id: str | None = item_field(roles=["pk"], auto_generated=auto_generated_key())
    created_at: str | None = item_field(
        name="createdAt",
        roles=["sk"],
        auto_generated=auto_generated_timestamp(GenerateStrategy.CREATE),
    )
    updated_at: int | None = item_field(name="updatedAt", auto_generated=auto_generated_timestamp())
    seen_at: datetime | None = item_field(name="seenAt", auto_generated=auto_generated_timestamp())
    title: str = item_field(default="")


def test_model_definition_extracts_keys_attributes_and_indexes() -> None:
    model = ModelDefinition.from_dataclass(
        User,
        table_name="users",
        indexes=[
            gsi("gsi-email", partition="email_hash"),
            lsi("lsi-created-at", sort="created_at"),
        ],
    )
    assert model.pk.attribute_name == "PK"
    assert model.sk is not None and model.sk.attribute_name == "SK"
    assert model.attributes["email_hash"].attribute_name == "emailHash"
    assert model.attributes["blob"].omitempty is True
    assert "ignored" not in model.attributes

    assert len(model.indexes) == 2
    assert model.indexes[0].kind == "GSI" and model.indexes[0].partition == "emailHash"
    assert model.indexes[1].kind == "LSI" and model.indexes[1].partition == "PK"


def test_model_definition_assigns_key_roles() -> None:
    model = ModelDefinition.from_dataclass(
        User,
        indexes=[gsi("gsi-email", partition="email_hash"), lsi("lsi-created-at", sort="created_at")],
    )
    assert model.attributes["pk"].key_role is KeyRole.PARTITION_KEY
    assert model.attributes["sk"].key_role is KeyRole.SORT_KEY
    assert model.attributes["email_hash"].key_role is KeyRole.INDEX_KEY
    assert model.attributes["created_at"].key_role is KeyRole.INDEX_KEY
    assert model.attributes["tenant"].key_role is KeyRole.INDEX_KEY
    assert model.attributes["blob"].key_role is KeyRole.NONE
    assert {a.python_name for a in model.key_attributes} == {"pk", "sk", "email_hash", "created_at", "tenant"}


def test_model_definition_resolves_declared_types_and_generators() -> None:
    model = ModelDefinition.from_dataclass(Event, table_name="events", converters=ConverterRegistry())

    assert model.attributes["id"].declared_type is str
    assert model.attributes["updated_at"].declared_type is int
    assert model.attributes["seen_at"].declared_type is datetime
    assert model.attributes["title"].declared_type is str

    id_gen = model.attributes["id"].generator
    assert isinstance(id_gen, IdentifierGenerator)
    assert id_gen.strategy is GenerateStrategy.CREATE

    created_gen = model.attributes["created_at"].generator
    assert isinstance(created_gen, TimestampGenerator)
    assert created_gen.strategy is GenerateStrategy.CREATE

    updated_gen = model.attributes["updated_at"].generator
    assert isinstance(updated_gen, TimestampGenerator)
    assert updated_gen.strategy is GenerateStrategy.ALWAYS

    assert model.attributes["title"].generator is None
    assert [a.python_name for a in model.generated_attributes] == ["id", "created_at", "updated_at", "seen_at"]


def test_generated_fields_default_to_none() -> None:
    defaults = {f.name: f.default for f in fields(Event)}
    assert defaults["id"] is None
    assert defaults["updated_at"] is None
    assert Event().id is None


def test_unsupported_declared_type_fails_at_schema_build() -> None:
    @dataclass(frozen=True)
    class Bad:
        id: int | None = item_field(roles=["pk"], auto_generated=auto_generated_key())

    with pytest.raises(ConfigurationError, match="no converter registered"):
        ModelDefinition.from_dataclass(Bad, converters=ConverterRegistry())

    @dataclass(frozen=True)
    class BadTimestamp:
        pk: str = item_field(roles=["pk"])
        at: float | None = item_field(auto_generated=auto_generated_timestamp())

    with pytest.raises(ConfigurationError):
        ModelDefinition.from_dataclass(BadTimestamp, converters=ConverterRegistry())


@pytest.mark.parametrize("role", ["pk", "sk"])
def test_always_strategy_is_rejected_on_primary_key(role: str) -> None:
    @dataclass(frozen=True)
    class Bad:
        pk: str = item_field(roles=["pk"], default="A")
        at: int | None = item_field(roles=[role], auto_generated=auto_generated_timestamp())

    with pytest.raises((ConfigurationError, ModelDefinitionError)):
        ModelDefinition.from_dataclass(Bad, converters=ConverterRegistry())


def test_always_strategy_is_rejected_on_partition_key_with_message() -> None:
    @dataclass(frozen=True)
    class Bad:
        at: int | None = item_field(roles=["pk"], auto_generated=auto_generated_timestamp())

    with pytest.raises(ConfigurationError, match="ALWAYS strategy"):
        ModelDefinition.from_dataclass(Bad, converters=ConverterRegistry())


def test_always_strategy_is_allowed_on_index_key() -> None:
    @dataclass(frozen=True)
    class Post:
        pk: str = item_field(roles=["pk"])
        updated_at: int | None = item_field(auto_generated=auto_generated_timestamp())

    model = ModelDefinition.from_dataclass(
        Post,
        indexes=[gsi("by-updated", partition="pk", sort="updated_at")],
        converters=ConverterRegistry(),
    )
    attr = model.attributes["updated_at"]
    assert attr.key_role is KeyRole.INDEX_KEY
    assert attr.generator is not None and attr.generator.strategy is GenerateStrategy.ALWAYS


def test_custom_generator_must_satisfy_protocol() -> None:
    class NoStrategy:
        def __init__(self, declared_type: Any, *, registry: ConverterRegistry) -> None:
            pass

        def generate(self, current_value: Any) -> Any:
            return "x"

    @dataclass(frozen=True)
    class Bad:
        pk: str = item_field(roles=["pk"])
        value: str | None = item_field(auto_generated=auto_generated(NoStrategy))

    with pytest.raises(ConfigurationError, match="must define strategy"):
        ModelDefinition.from_dataclass(Bad, converters=ConverterRegistry())


def test_custom_generator_with_invalid_strategy_is_rejected() -> None:
    class StringStrategy:
        def __init__(self, declared_type: Any, *, registry: ConverterRegistry) -> None:
            self.strategy = "ALWAYS"

        def generate(self, current_value: Any) -> Any:
            return "x"

    @dataclass(frozen=True)
    class Bad:
        pk: str = item_field(roles=["pk"])
        value: str | None = item_field(auto_generated=auto_generated(StringStrategy))

    with pytest.raises(ConfigurationError, match="invalid strategy"):
        ModelDefinition.from_dataclass(Bad, converters=ConverterRegistry())


def test_custom_generator_constructor_mismatch_is_a_configuration_error() -> None:
    def no_registry(declared_type: Any) -> Any:  # pragma: no cover
        raise AssertionError("not called")

    @dataclass(frozen=True)
    class Bad:
        pk: str = item_field(roles=["pk"])
        value: str | None = item_field(auto_generated=auto_generated(no_registry))

    with pytest.raises(ConfigurationError, match="cannot construct generator"):
        ModelDefinition.from_dataclass(Bad, converters=ConverterRegistry())


def test_auto_generated_requires_callable() -> None:
    with pytest.raises(ConfigurationError):
        auto_generated("not-a-generator")  # type: ignore[arg-type]


def test_item_field_validation() -> None:
    with pytest.raises(ValueError, match="both default and default_factory"):
        item_field(default="a", default_factory=str)
    with pytest.raises(ValueError, match="GeneratorSpec"):
        item_field(auto_generated=IdentifierGenerator)  # type: ignore[arg-type]


def test_model_definition_rejects_missing_pk() -> None:
    @dataclass(frozen=True)
    class Bad:
        sk: str = item_field(roles=["sk"])

    with pytest.raises(ModelDefinitionError, match="exactly one pk"):
        ModelDefinition.from_dataclass(Bad)


def test_model_definition_rejects_multiple_pk() -> None:
    @dataclass(frozen=True)
    class Bad:
        pk1: str = item_field(roles=["pk"])
        pk2: str = item_field(roles=["pk"])

    with pytest.raises(ModelDefinitionError, match="exactly one pk"):
        ModelDefinition.from_dataclass(Bad)


def test_model_definition_rejects_bad_indexes() -> None:
    with pytest.raises(ModelDefinitionError, match="duplicate index name"):
        ModelDefinition.from_dataclass(
            User, indexes=[gsi("dup", partition="email_hash"), gsi("dup", partition="email_hash")]
        )
    with pytest.raises(ModelDefinitionError, match="unknown partition field"):
        ModelDefinition.from_dataclass(User, indexes=[gsi("g", partition="missing")])
    with pytest.raises(ModelDefinitionError, match="unknown sort field"):
        ModelDefinition.from_dataclass(User, indexes=[lsi("l", sort="missing")])


def test_model_definition_rejects_non_dataclass() -> None:
    with pytest.raises(ModelDefinitionError, match="must be a dataclass"):
        ModelDefinition.from_dataclass(dict)  # type: ignore[arg-type]


def test_model_definition_for_caches_per_record_type() -> None:
    reg = ConverterRegistry()
    first = model_definition_for(Event, table_name="events", converters=reg)
    second = model_definition_for(Event, table_name="events", converters=reg)
    other = model_definition_for(Event, table_name="events-archive", converters=reg)

    assert first is second
    assert other is not first
    assert other.table_name == "events-archive"
    assert first.attributes["id"].generator is second.attributes["id"].generator


def test_model_definition_rejects_multiple_sk() -> None:
    @dataclass(frozen=True)
    class Bad:
        pk: str = item_field(roles=["pk"])
        sk1: str = item_field(roles=["sk"])
        sk2: str = item_field(roles=["sk"])

    with pytest.raises(ModelDefinitionError, match="at most one sk"):
        ModelDefinition.from_dataclass(Bad)


def test_indexes_resolve_to_attribute_names() -> None:
    model = ModelDefinition.from_dataclass(
        User,
        indexes=[gsi("by-tenant", partition="tenant", sort="created_at"), lsi("by-created", sort="created_at")],
    )
    by_tenant, by_created = model.indexes
    assert (by_tenant.partition, by_tenant.sort) == ("tenant", "createdAt")
    assert (by_created.partition, by_created.sort) == ("PK", "createdAt")
    assert lsi("by-created", sort="created_at").key_fields() == ("created_at",)
