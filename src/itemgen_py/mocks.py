"""Scripted DynamoDB client for exercising the write path without AWS."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from boto3.dynamodb.types import TypeDeserializer


class _Anything:
    def __eq__(self, other: object) -> bool:
        return True

    def __hash__(self) -> int:  # pragma: no cover
        return 0

    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _Anything()

RequestCheck = Mapping[str, Any] | Callable[[Mapping[str, Any]], None]


def _first_mismatch(expected: Any, actual: Any, where: str) -> str | None:
    """Describe the first place ``actual`` diverges from ``expected``.

    Mappings match when every expected key matches; extra keys in ``actual``
    are allowed. Lists must match element by element.
    """
    if expected is ANY:
        return None
    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            return f"{where}: expected a mapping, got {type(actual).__name__}"
        for key, sub in expected.items():
            if key not in actual:
                return f"{where}: missing key {key!r}"
            problem = _first_mismatch(sub, actual[key], f"{where}.{key}")
            if problem is not None:
                return problem
        return None
    if isinstance(expected, list):
        if not isinstance(actual, list) or len(actual) != len(expected):
            return f"{where}: expected {expected!r}, got {actual!r}"
        for index, (want, got) in enumerate(zip(expected, actual, strict=True)):
            problem = _first_mismatch(want, got, f"{where}[{index}]")
            if problem is not None:
                return problem
        return None
    if expected != actual:
        return f"{where}: expected {expected!r}, got {actual!r}"
    return None


def _set_targets(update_expression: str) -> list[tuple[str, str]]:
    set_section = update_expression.split(" REMOVE ", 1)[0]
    if not set_section.startswith("SET "):
        return []
    pairs = []
    for clause in set_section[len("SET ") :].split(","):
        name_ref, _, value_ref = clause.partition("=")
        pairs.append((name_ref.strip(), value_ref.strip()))
    return pairs


@dataclass(frozen=True)
class ScriptedResponse:
    operation: str
    check: RequestCheck | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


@dataclass(frozen=True)
class RecordedCall:
    operation: str
    request: Mapping[str, Any]
    _deserializer: TypeDeserializer = field(default_factory=TypeDeserializer, repr=False, compare=False)

    @property
    def written(self) -> dict[str, Any]:
        """Attribute values this call stores, decoded and keyed by attribute name.

        Covers the ``Item`` of a put and the SET clauses of an update; numbers
        decode to ``Decimal`` as boto3 returns them.
        """
        if self.operation == "put_item":
            return {name: self._deserializer.deserialize(value) for name, value in self.request["Item"].items()}
        if self.operation == "update_item":
            names = self.request.get("ExpressionAttributeNames", {})
            values = self.request.get("ExpressionAttributeValues", {})
            return {
                names.get(name_ref, name_ref): self._deserializer.deserialize(values[value_ref])
                for name_ref, value_ref in _set_targets(self.request.get("UpdateExpression", ""))
            }
        return {}


class FakeDynamoDBClient:
    """Stand-in for ``boto3.client("dynamodb")`` covering put, get and update.

    Calls are answered in the order they were scripted with ``expect``; every
    call is kept in ``calls``.
    """

    def __init__(self) -> None:
        self._script: deque[ScriptedResponse] = deque()
        self.calls: list[RecordedCall] = []

    def expect(
        self,
        operation: str,
        check: RequestCheck | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._script.append(ScriptedResponse(operation=operation, check=check, response=response, error=error))

    def assert_no_pending(self) -> None:
        if self._script:
            pending = ", ".join(step.operation for step in self._script)
            raise AssertionError(f"pending expected calls: {pending}")

    def writes(self) -> list[dict[str, Any]]:
        return [call.written for call in self.calls if call.operation in ("put_item", "update_item")]

    def _answer(self, operation: str, request: dict[str, Any]) -> Mapping[str, Any]:
        self.calls.append(RecordedCall(operation=operation, request=request))
        if not self._script:
            raise AssertionError(f"unexpected call: {operation}")

        step = self._script.popleft()
        if step.operation != operation:
            raise AssertionError(f"expected {step.operation}, got {operation}")

        if callable(step.check):
            step.check(request)
        elif step.check is not None:
            problem = _first_mismatch(step.check, request, operation)
            if problem is not None:
                raise AssertionError(problem)

        if step.error is not None:
            raise step.error
        return dict(step.response or {})

    def put_item(self, **request: Any) -> Mapping[str, Any]:
        return self._answer("put_item", request)

    def get_item(self, **request: Any) -> Mapping[str, Any]:
        return self._answer("get_item", request)

    def update_item(self, **request: Any) -> Mapping[str, Any]:
        return self._answer("update_item", request)
