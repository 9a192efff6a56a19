"""Helpers for the low-level DynamoDB ``TransactWriteItems`` API."""

from typing import Any

from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

_serializer = TypeSerializer()


def serialize_attributes(values: dict[str, Any]) -> dict[str, Any]:
    """Convert plain Python values to typed attribute values for the client API."""
    return {key: _serializer.serialize(value) for key, value in values.items()}


def is_condition_failure(error: ClientError) -> bool:
    """Whether a write failed on its condition rather than on the store itself.

    Covers single conditional writes and transactions cancelled because one of
    their conditions failed.
    """
    code = error.response.get("Error", {}).get("Code")
    if code == "ConditionalCheckFailedException":
        return True
    if code != "TransactionCanceledException":
        return False
    reasons = error.response.get("CancellationReasons", [])
    return any(reason.get("Code") == "ConditionalCheckFailed" for reason in reasons)
