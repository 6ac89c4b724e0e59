# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""DynamoDB key-value client built on boto3."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal
from typing import Any, TypeVar

import boto3
import structlog
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from dynastore.kernel.exceptions import BackendException
from dynastore.session.ports.outbound import KEY_ATTRIBUTE, LessThan

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def _to_dynamo(value: Any) -> Any:
    """Convert floats to Decimal, which is the only number type DynamoDB accepts."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_dynamo(v) for v in value]
    return value


def _from_dynamo(value: Any) -> Any:
    """Convert DynamoDB Decimals back to int or float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    return value


def _serialize(item: Mapping[str, Any]) -> dict[str, Any]:
    return {name: _serializer.serialize(_to_dynamo(value)) for name, value in item.items()}


def _deserialize(item: Mapping[str, Any]) -> dict[str, Any]:
    return {name: _from_dynamo(_deserializer.deserialize(value)) for name, value in item.items()}


def _key(key: str) -> dict[str, Any]:
    return {KEY_ATTRIBUTE: {"S": key}}


class DynamoDBClient:
    """Key-value client over the low-level boto3 DynamoDB client.

    Each call runs the blocking boto3 request in a worker thread, so the
    event loop is never blocked on the network. botocore's own retry and
    timeout policy applies; failures surface as :class:`BackendException`
    carrying the DynamoDB error code.

    Tables must have a string hash key named ``id``.

    Args:
        dynamodb: Pre-built ``boto3.client("dynamodb")``. Built from the
            remaining arguments when omitted, with TLS enabled.
        region_name: AWS region for the default client.
        endpoint_url: Alternative endpoint (DynamoDB Local, LocalStack).
        access_key_id: AWS access key id; the default credential chain is
            used when omitted.
        secret_access_key: AWS secret access key.
    """

    def __init__(
        self,
        dynamodb: Any | None = None,
        *,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
    ) -> None:
        if dynamodb is None:
            dynamodb = boto3.client(
                "dynamodb",
                region_name=region_name,
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                use_ssl=True,
            )
        self._dynamodb = dynamodb

    async def _call(self, operation: str, table: str, func: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(func)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            code = error.get("Code", "Unknown")
            logger.warning("dynamodb_call_failed", operation=operation, table=table, error_code=code)
            raise BackendException(
                f"DynamoDB {operation} on table '{table}' failed: {error.get('Message', exc)}",
                code=code,
                context={"table": table, "operation": operation},
            ) from exc
        except BotoCoreError as exc:
            logger.warning("dynamodb_call_failed", operation=operation, table=table, error=str(exc))
            raise BackendException(
                f"DynamoDB {operation} on table '{table}' failed: {exc}",
                code=type(exc).__name__,
                context={"table": table, "operation": operation},
            ) from exc

    async def get_item(self, table: str, key: str) -> dict[str, Any] | None:
        response = await self._call(
            "GetItem",
            table,
            lambda: self._dynamodb.get_item(TableName=table, Key=_key(key), ConsistentRead=True),
        )
        item = response.get("Item")
        return _deserialize(item) if item else None

    async def put_item(self, table: str, item: Mapping[str, Any]) -> None:
        await self._call(
            "PutItem",
            table,
            lambda: self._dynamodb.put_item(TableName=table, Item=_serialize(item)),
        )

    async def update_item(self, table: str, key: str, attributes: Mapping[str, Any]) -> None:
        if not attributes:
            return
        names: dict[str, str] = {}
        values: dict[str, Any] = {}
        assignments: list[str] = []
        for index, (name, value) in enumerate(attributes.items()):
            names[f"#a{index}"] = name
            values[f":v{index}"] = _serializer.serialize(_to_dynamo(value))
            assignments.append(f"#a{index} = :v{index}")

        await self._call(
            "UpdateItem",
            table,
            lambda: self._dynamodb.update_item(
                TableName=table,
                Key=_key(key),
                UpdateExpression="SET " + ", ".join(assignments),
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            ),
        )

    async def delete_item(self, table: str, key: str) -> None:
        await self._call(
            "DeleteItem",
            table,
            lambda: self._dynamodb.delete_item(TableName=table, Key=_key(key)),
        )

    async def scan(
        self, table: str, condition: LessThan, fields: Sequence[str]
    ) -> list[dict[str, Any]]:
        names = {"#c": condition.attribute}
        names.update({f"#f{index}": name for index, name in enumerate(fields)})
        request: dict[str, Any] = {
            "TableName": table,
            "FilterExpression": "#c < :c",
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": {":c": {"N": str(condition.value)}},
        }
        if fields:
            request["ProjectionExpression"] = ", ".join(f"#f{index}" for index in range(len(fields)))

        def _scan_all() -> list[dict[str, Any]]:
            items: list[dict[str, Any]] = []
            while True:
                response = self._dynamodb.scan(**request)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return items
                request["ExclusiveStartKey"] = last_key

        raw_items = await self._call("Scan", table, _scan_all)
        return [_deserialize(item) for item in raw_items]

    async def create_table(self, table: str) -> None:
        """Create *table* with an ``id`` string hash key and on-demand billing.

        Waits until the table is active. Intended for development and tests;
        production tables are usually provisioned out of band.
        """

        def _create() -> None:
            self._dynamodb.create_table(
                TableName=table,
                KeySchema=[{"AttributeName": KEY_ATTRIBUTE, "KeyType": "HASH"}],
                AttributeDefinitions=[{"AttributeName": KEY_ATTRIBUTE, "AttributeType": "S"}],
                BillingMode="PAY_PER_REQUEST",
            )
            self._dynamodb.get_waiter("table_exists").wait(TableName=table)

        await self._call("CreateTable", table, _create)
        logger.info("dynamodb_table_created", table=table)
