"""
DynamoDB Storage Implementation

DESIGN DECISION: DynamoDB is the production backend because:
1. One table with composite keys answers every access pattern we need
2. Conditional writes give us optimistic concurrency without locks
3. Pay-per-request billing suits a personal-finance workload

TRADEOFFS:
- Global secondary indexes are eventually consistent; table reads are strongly consistent
- Batch writes may report unprocessed items (the repository retries them)
- boto3 is synchronous, so calls run in a worker thread with that thread's own resource

The implementation follows the abstract interface, so the repository is
tested against the in-memory store without changing business logic.
"""

import asyncio
import threading
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional

import boto3
import structlog
from boto3.dynamodb.conditions import Attr, Key as KeyCondition
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from fintrack.config import DynamoDBSettings, get_settings
from fintrack.services.storage.interface import (
    Condition,
    ConditionFailedError,
    ConditionKind,
    ConnectionError,
    IndexDefinition,
    Item,
    Key,
    KeyValueStore,
    QueryPage,
    StorageError,
    TransientStorageError,
)


logger = structlog.get_logger(__name__)


# Error codes DynamoDB returns for load and availability problems
TRANSIENT_ERROR_CODES = frozenset({
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
    "InternalServerError",
    "ServiceUnavailable",
})


# =============================================================================
# VALUE CONVERSION
# =============================================================================

def to_dynamo(value: Any) -> Any:
    """boto3 rejects floats; numbers go over the wire as Decimal."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_dynamo(v) for v in value]
    return value


def from_dynamo(value: Any) -> Any:
    """Decimal back to int when integral, float otherwise."""
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    return value


def translate_error(error: Exception, operation: str) -> StorageError:
    """Map a botocore failure onto the store error taxonomy."""
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        if code == "ConditionalCheckFailedException":
            return ConditionFailedError(f"Condition failed during {operation}")
        if code in TRANSIENT_ERROR_CODES:
            return TransientStorageError(f"Failed to {operation}: {code}")
        return StorageError(f"Failed to {operation}: {error}")
    if isinstance(error, (ConnectTimeoutError, ReadTimeoutError)):
        return TransientStorageError(f"Failed to {operation}: {error}")
    if isinstance(error, EndpointConnectionError):
        return ConnectionError(f"Failed to {operation}: {error}")
    return StorageError(f"Failed to {operation}: {error}")


# =============================================================================
# CLIENT
# =============================================================================

class DynamoDBClient:
    """
    Low-level DynamoDB client wrapper.

    Owns the boto3 resources and table handles, and knows how to create
    the table with its secondary indexes.

    boto3 resources are not thread-safe and store calls run on worker
    threads, so every thread gets its own session, resource and table
    handle. An injected resource is shared as-is.
    """

    def __init__(
        self,
        settings: Optional[DynamoDBSettings] = None,
        resource: Any = None,
    ):
        self._settings = settings or get_settings().dynamodb
        self._resource = resource
        self._local = threading.local()

    @property
    def table_name(self) -> str:
        return self._settings.table_name

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(ConnectionError),
        reraise=True,
    )
    def connect(self) -> Any:
        """
        Get the calling thread's boto3 DynamoDB resource, creating it on first use.

        Credentials come from the standard AWS chain (env, profile, role).
        """
        if self._resource is not None:
            return self._resource

        resource = getattr(self._local, "resource", None)
        if resource is None:
            try:
                resource = boto3.session.Session().resource(
                    "dynamodb",
                    region_name=self._settings.region,
                    endpoint_url=self._settings.endpoint_url,
                    config=Config(
                        connect_timeout=self._settings.connect_timeout,
                        read_timeout=self._settings.read_timeout,
                    ),
                )
            except BotoCoreError as e:
                raise ConnectionError(f"Failed to connect to DynamoDB: {e}") from e
            self._local.resource = resource
            logger.info(
                "dynamodb_connected",
                region=self._settings.region,
                endpoint_url=self._settings.endpoint_url,
                thread=threading.current_thread().name,
            )
        return resource

    def get_table(self) -> Any:
        """Get the calling thread's handle on the configured table."""
        table = getattr(self._local, "table", None)
        if table is None:
            table = self.connect().Table(self.table_name)
            self._local.table = table
        return table

    def ensure_table(
        self,
        primary_key: IndexDefinition,
        indexes: Iterable[IndexDefinition] = (),
    ) -> bool:
        """
        Create the table if it does not exist yet.

        Every key attribute is a string; indexes project all attributes.

        Returns:
            True if the table was created, False if it already existed
        """
        client = self.connect().meta.client
        try:
            client.describe_table(TableName=self.table_name)
            logger.info("dynamodb_table_exists", table=self.table_name)
            return False
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "ResourceNotFoundException":
                raise translate_error(e, "describe table") from e

        indexes = list(indexes)
        attribute_names = []
        for definition in [primary_key, *indexes]:
            for name in (definition.partition_key, definition.sort_key):
                if name not in attribute_names:
                    attribute_names.append(name)

        try:
            client.create_table(
                TableName=self.table_name,
                KeySchema=_key_schema(primary_key),
                AttributeDefinitions=[
                    {"AttributeName": name, "AttributeType": "S"}
                    for name in attribute_names
                ],
                GlobalSecondaryIndexes=[
                    {
                        "IndexName": index.name,
                        "KeySchema": _key_schema(index),
                        "Projection": {"ProjectionType": "ALL"},
                    }
                    for index in indexes
                ],
                BillingMode="PAY_PER_REQUEST",
            )
            client.get_waiter("table_exists").wait(TableName=self.table_name)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, "create table") from e

        logger.info(
            "dynamodb_table_created",
            table=self.table_name,
            indexes=[index.name for index in indexes],
        )
        return True


def _key_schema(definition: IndexDefinition) -> list[dict[str, str]]:
    return [
        {"AttributeName": definition.partition_key, "KeyType": "HASH"},
        {"AttributeName": definition.sort_key, "KeyType": "RANGE"},
    ]


# =============================================================================
# STORE
# =============================================================================

class DynamoDBStore(KeyValueStore):
    """
    DynamoDB implementation of KeyValueStore.

    Conditions become ConditionExpressions on the primary key or the
    named attribute; queries become KeyConditionExpressions.
    """

    def __init__(
        self,
        primary_key: IndexDefinition,
        indexes: Iterable[IndexDefinition] = (),
        client: Optional[DynamoDBClient] = None,
    ):
        self._primary_key = primary_key
        self._indexes = {index.name: index for index in indexes}
        self._client = client or DynamoDBClient()

    @property
    def primary_key(self) -> IndexDefinition:
        return self._primary_key

    async def _call(self, operation: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, operation) from e

    def _on_table(self, method: str) -> Callable[..., Any]:
        """Resolve the table handle inside the worker thread that runs the call."""
        def invoke(**kwargs: Any) -> Any:
            return getattr(self._client.get_table(), method)(**kwargs)
        return invoke

    def _batch_write_item(self, **kwargs: Any) -> Any:
        return self._client.connect().batch_write_item(**kwargs)

    def _condition_expression(self, condition: Condition) -> Any:
        if condition.kind == ConditionKind.KEY_NOT_EXISTS:
            return Attr(self._primary_key.partition_key).not_exists()
        if condition.kind == ConditionKind.KEY_EXISTS:
            return Attr(self._primary_key.partition_key).exists()
        return Attr(condition.attribute).eq(to_dynamo(condition.value))

    def _resolve_index(self, index_name: Optional[str]) -> IndexDefinition:
        if index_name is None:
            return self._primary_key
        try:
            return self._indexes[index_name]
        except KeyError:
            raise StorageError(f"Unknown index: {index_name}")

    async def put(self, item: Item, condition: Optional[Condition] = None) -> None:
        kwargs: dict[str, Any] = {"Item": to_dynamo(item)}
        if condition is not None:
            kwargs["ConditionExpression"] = self._condition_expression(condition)
        await self._call("put item", self._on_table("put_item"), **kwargs)

    async def get(self, key: Key) -> Optional[Item]:
        response = await self._call(
            "get item",
            self._on_table("get_item"),
            Key=to_dynamo(key),
            ConsistentRead=True,
        )
        item = response.get("Item")
        return from_dynamo(item) if item is not None else None

    async def delete(self, key: Key, condition: Optional[Condition] = None) -> None:
        kwargs: dict[str, Any] = {"Key": to_dynamo(key)}
        if condition is not None:
            kwargs["ConditionExpression"] = self._condition_expression(condition)
        await self._call("delete item", self._on_table("delete_item"), **kwargs)

    async def query(
        self,
        partition_value: str,
        index_name: Optional[str] = None,
        sort_key_prefix: Optional[str] = None,
        sort_key_equals: Optional[str] = None,
        limit: Optional[int] = None,
        exclusive_start_key: Optional[Key] = None,
        scan_forward: bool = True,
        consistent_read: bool = False,
    ) -> QueryPage:
        index = self._resolve_index(index_name)
        if consistent_read and index_name is not None:
            raise StorageError(f"Consistent reads are not supported on index {index_name}")

        key_condition = KeyCondition(index.partition_key).eq(partition_value)
        if sort_key_equals is not None:
            key_condition = key_condition & KeyCondition(index.sort_key).eq(sort_key_equals)
        elif sort_key_prefix is not None:
            key_condition = key_condition & KeyCondition(index.sort_key).begins_with(sort_key_prefix)

        kwargs: dict[str, Any] = {
            "KeyConditionExpression": key_condition,
            "ScanIndexForward": scan_forward,
        }
        if index_name is not None:
            kwargs["IndexName"] = index_name
        if limit is not None:
            kwargs["Limit"] = limit
        if exclusive_start_key:
            kwargs["ExclusiveStartKey"] = to_dynamo(exclusive_start_key)
        if consistent_read:
            kwargs["ConsistentRead"] = True

        response = await self._call("query", self._on_table("query"), **kwargs)
        return QueryPage(
            items=[from_dynamo(item) for item in response.get("Items", [])],
            last_key=from_dynamo(response.get("LastEvaluatedKey")) or None,
        )

    async def batch_write(self, items: list[Item]) -> list[Item]:
        table_name = self._client.table_name
        response = await self._call(
            "batch write items",
            self._batch_write_item,
            RequestItems={
                table_name: [{"PutRequest": {"Item": to_dynamo(item)}} for item in items]
            },
        )
        unprocessed = response.get("UnprocessedItems", {}).get(table_name, [])
        return [from_dynamo(request["PutRequest"]["Item"]) for request in unprocessed]
