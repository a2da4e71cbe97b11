"""DynamoDB-backed lock store using conditional PutItem/UpdateItem."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Sequence

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.client import BaseClient
from botocore.exceptions import ClientError

from dynolock.core.errors import ConditionFailedError
from dynolock.data.store import Item, LockStore


CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


def is_error_code(err: ClientError, code: str) -> bool:
    return err.response.get("Error", {}).get("Code") == code


class DynamoDBLockStore(LockStore):
    """Speaks to DynamoDB (or DynamoDB Local) through a low-level boto3 client."""

    def __init__(self, client: BaseClient) -> None:
        self.client = client
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    @classmethod
    def connect(cls, *, region: Optional[str] = None, endpoint_url: Optional[str] = None) -> "DynamoDBLockStore":
        return cls(boto3.client("dynamodb", region_name=region, endpoint_url=endpoint_url))

    def put_if_absent(self, table: str, item: Item, absent_attribute: str) -> None:
        self._call(
            self.client.put_item,
            TableName=table,
            Item=self._serialize(item),
            ConditionExpression="attribute_not_exists(#id)",
            ExpressionAttributeNames={"#id": absent_attribute},
        )

    def replace_if_equal(self, table: str, item: Item, condition_attribute: str, expected: Any) -> None:
        self._call(
            self.client.put_item,
            TableName=table,
            Item=self._serialize(item),
            ConditionExpression="#id = :id",
            ExpressionAttributeNames={"#id": condition_attribute},
            ExpressionAttributeValues={":id": self._serializer.serialize(expected)},
        )

    def remove_if_equal(
        self,
        table: str,
        key: Item,
        attributes: Sequence[str],
        condition_attribute: str,
        expected: Any,
    ) -> None:
        names = {"#id": condition_attribute}
        placeholders = []
        for index, name in enumerate(attributes):
            if name == condition_attribute:
                placeholders.append("#id")
                continue
            placeholder = f"#a{index}"
            names[placeholder] = name
            placeholders.append(placeholder)
        self._call(
            self.client.update_item,
            TableName=table,
            Key=self._serialize(key),
            UpdateExpression="REMOVE " + ", ".join(placeholders),
            ConditionExpression="#id = :id",
            ExpressionAttributeNames=names,
            ExpressionAttributeValues={":id": self._serializer.serialize(expected)},
        )

    def get(self, table: str, key: Item, attributes: Sequence[str]) -> Optional[Item]:
        names = {f"#a{index}": name for index, name in enumerate(attributes)}
        response = self.client.get_item(
            TableName=table,
            Key=self._serialize(key),
            ProjectionExpression=", ".join(names),
            ExpressionAttributeNames=names,
            ConsistentRead=True,
        )
        raw = response.get("Item")
        if not raw:
            return None
        return {name: self._deserializer.deserialize(value) for name, value in raw.items()}

    def _serialize(self, item: Item) -> Dict[str, Dict[str, Any]]:
        return {name: self._serializer.serialize(value) for name, value in item.items()}

    @staticmethod
    def _call(operation: Callable[..., Any], **kwargs: Any) -> Any:
        try:
            return operation(**kwargs)
        except ClientError as err:
            if is_error_code(err, CONDITIONAL_CHECK_FAILED):
                raise ConditionFailedError(str(err)) from err
            raise
