from __future__ import annotations

import os
import uuid
from dataclasses import dataclass

import boto3

from itemgen_py import (
    GenerateStrategy,
    ModelDefinition,
    Table,
    auto_generated_key,
    auto_generated_timestamp,
    gsi,
    item_field,
)


@dataclass(frozen=True)
class Note:
    id: str | None = item_field(roles=["pk"], auto_generated=auto_generated_key())
    created_at: str | None = item_field(
        name="createdAt", auto_generated=auto_generated_timestamp(GenerateStrategy.CREATE)
    )
    updated_at: int | None = item_field(name="updatedAt", auto_generated=auto_generated_timestamp())
    owner: str = item_field(default="")
    body: str = item_field(default="")


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


def main() -> None:
    client = _client()
    table_name = f"itemgen_py_example_{uuid.uuid4().hex[:12]}"

    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "owner", "AttributeType": "S"},
            {"AttributeName": "updatedAt", "AttributeType": "N"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "by-owner-updated",
                "KeySchema": [
                    {"AttributeName": "owner", "KeyType": "HASH"},
                    {"AttributeName": "updatedAt", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)

    try:
        model = ModelDefinition.from_dataclass(
            Note,
            table_name=table_name,
            indexes=[gsi("by-owner-updated", partition="owner", sort="updated_at")],
        )
        table = Table(model, client=client)

        created = table.put(Note(owner="ada", body="first draft"))
        print("put:", created)

        saved = table.save(Note(id=created.id, created_at=created.created_at, owner="ada", body="second draft"))
        print("save:", saved)

        print("update:", table.update(saved.id, None, {"body": "final"}))
        print("get:", table.get(saved.id))
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
