"""Write path for one model: records pass through attribute generation, then boto3."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer
from botocore.exceptions import ClientError

from .aws_errors import map_client_error
from .converters import iso8601_to_timestamp, timestamp_to_iso8601
from .errors import NotFoundError, ValidationError
from .generation import WriteKind, generate_for_item, generate_for_updates
from .model import AttributeDefinition, ModelDefinition

_NULL = {"NULL": True}


def _omitted(attr: AttributeDefinition, value: Any) -> bool:
    return attr.omitempty and not value


def _to_wire(value: Any) -> Any:
    # TypeSerializer handles neither type; both are stored as strings.
    if isinstance(value, datetime):
        return timestamp_to_iso8601(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


def _from_wire(value: Any, declared_type: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        if declared_type is datetime:
            return iso8601_to_timestamp(value)
        if declared_type is uuid.UUID:
            return uuid.UUID(value)
    if isinstance(value, Decimal) and declared_type in (int, float):
        return declared_type(value)
    if isinstance(value, Binary) and declared_type is bytes:
        return bytes(value)
    return value


class Table[T]:
    """Writes and reads records of one model.

    ``put`` is creation-oriented; ``save`` and ``update`` are update-oriented.
    Each returns the record with its generated values applied.
    """

    def __init__(
        self,
        model: ModelDefinition[T],
        *,
        client: Any | None = None,
        table_name: str | None = None,
    ) -> None:
        table_name = table_name or model.table_name
        if not table_name:
            raise ValueError("table_name is required (or set ModelDefinition.table_name)")

        self._model = model
        self._table_name = table_name
        self._client: Any = client or boto3.client("dynamodb")
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def put(self, item: T) -> T:
        item = generate_for_item(self._model, item, WriteKind.CREATE)
        self._call("put_item", Item=self._encode_item(item))
        return item

    def save(self, item: T) -> T:
        """SET every non-key attribute of ``item`` on the stored record.

        Present CREATE-strategy values are kept and ALWAYS values refreshed.
        None values are removed from the stored record.
        """
        item = generate_for_item(self._model, item, WriteKind.UPDATE)

        changes: dict[str, Any] = {}
        for name, attr in self._model.attributes.items():
            value = getattr(item, name)
            if not attr.key_role.is_primary and not _omitted(attr, value):
                changes[name] = value

        if changes:
            self._call("update_item", **self._update_request(self._key_of(item), changes))
        else:
            # Key-only records have nothing to SET.
            self._call("put_item", Item=self._encode_item(item))
        return item

    def update(self, pk: Any, sk: Any | None, updates: Mapping[str, Any]) -> T:
        """Apply a partial update and return the stored record.

        Unnamed ALWAYS-strategy attributes are added to ``updates``.
        """
        for name in updates:
            attr = self._model.attributes.get(name)
            if attr is None:
                raise ValidationError(f"unknown field: {name}")
            if attr.key_role.is_primary:
                raise ValidationError(f"cannot update key field: {name}")

        request = self._update_request(self._encode_key(pk, sk), generate_for_updates(self._model, updates))
        resp = self._call("update_item", ReturnValues="ALL_NEW", **request)

        attrs = resp.get("Attributes")
        if not attrs:
            raise ValidationError("update did not return Attributes")
        return self._decode_item(attrs)

    def get(self, pk: Any, sk: Any | None = None, *, consistent_read: bool = False) -> T:
        resp = self._call("get_item", Key=self._encode_key(pk, sk), ConsistentRead=consistent_read)
        item = resp.get("Item")
        if not item:
            raise NotFoundError("item not found")
        return self._decode_item(item)

    def _call(self, operation: str, **request: Any) -> Mapping[str, Any]:
        try:
            return getattr(self._client, operation)(TableName=self._table_name, **request)
        except ClientError as err:
            raise map_client_error(err) from err

    def _update_request(self, key: dict[str, Any], changes: Mapping[str, Any]) -> dict[str, Any]:
        if not changes:
            raise ValidationError("no updates provided")

        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        set_clauses: list[str] = []
        removed: list[str] = []
        for position, (name, value) in enumerate(changes.items()):
            attr = self._model.attributes[name]
            name_ref, value_ref = f"#f{position}", f":f{position}"
            names[name_ref] = attr.attribute_name
            if value is None:
                removed.append(name_ref)
            else:
                values[value_ref] = self._encode(attr, value)
                set_clauses.append(f"{name_ref} = {value_ref}")

        clauses = [("SET", set_clauses), ("REMOVE", removed)]
        request: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": " ".join(f"{verb} {', '.join(parts)}" for verb, parts in clauses if parts),
            "ExpressionAttributeNames": names,
        }
        if values:
            request["ExpressionAttributeValues"] = values
        return request

    def _encode(self, attr: AttributeDefinition, value: Any) -> dict[str, Any]:
        if attr.converter is not None and value is not None:
            value = attr.converter.to_dynamodb(value)
        try:
            return self._serializer.serialize(_to_wire(value))
        except (TypeError, ValueError) as err:
            raise ValidationError(f"cannot serialize field {attr.python_name}: {err}") from err

    def _encode_item(self, item: T) -> dict[str, Any]:
        encoded: dict[str, Any] = {}
        for name, attr in self._model.attributes.items():
            value = getattr(item, name)
            if not _omitted(attr, value):
                encoded[attr.attribute_name] = self._encode(attr, value)

        for key_attr in (self._model.pk, self._model.sk):
            if key_attr is not None and encoded.get(key_attr.attribute_name, _NULL) == _NULL:
                raise ValidationError(f"missing key attribute: {key_attr.python_name}")
        return encoded

    def _encode_key(self, pk: Any, sk: Any | None) -> dict[str, Any]:
        model = self._model
        if pk is None:
            raise ValidationError("pk is required")
        if model.sk is None and sk is not None:
            raise ValidationError("model does not define sk")
        if model.sk is not None and sk is None:
            raise ValidationError("sk is required")

        key = {model.pk.attribute_name: self._encode(model.pk, pk)}
        if model.sk is not None:
            key[model.sk.attribute_name] = self._encode(model.sk, sk)
        return key

    def _key_of(self, item: T) -> dict[str, Any]:
        sk_attr = self._model.sk
        return self._encode_key(
            getattr(item, self._model.pk.python_name),
            getattr(item, sk_attr.python_name) if sk_attr is not None else None,
        )

    def _decode_item(self, stored: Mapping[str, Any]) -> T:
        values: dict[str, Any] = {}
        try:
            for name, attr in self._model.attributes.items():
                if attr.attribute_name not in stored:
                    continue
                value = self._deserializer.deserialize(stored[attr.attribute_name])
                if attr.converter is not None and value is not None:
                    value = attr.converter.from_dynamodb(value)
                values[name] = _from_wire(value, attr.declared_type)
            return self._model.model_type(**values)
        except (TypeError, ValueError) as err:
            raise ValidationError(f"cannot decode item: {err}") from err
