from __future__ import annotations

from botocore.exceptions import ClientError

from .errors import AwsError, ConditionFailedError, ItemgenPyError, NotFoundError, ValidationError

_ERRORS_BY_CODE: dict[str, type[ItemgenPyError]] = {
    "ConditionalCheckFailedException": ConditionFailedError,
    "ValidationException": ValidationError,
    "ResourceNotFoundException": NotFoundError,
}


def map_client_error(err: ClientError) -> ItemgenPyError:
    details = err.response.get("Error", {})
    code = str(details.get("Code") or "UnknownError")
    message = str(details.get("Message") or err)

    error_type = _ERRORS_BY_CODE.get(code)
    if error_type is None:
        return AwsError(code=code, message=message)
    return error_type(message)
