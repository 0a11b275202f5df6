"""DynamoDB implementation of KeyValueStore."""
import logging
from functools import partial
from typing import TYPE_CHECKING, Any, Optional

from anyio import to_thread
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from mission_media.pagination import ResumeKey, from_attribute_values, to_attribute_values

from .base import KeyValueStore, ScanPage, StorageError

if TYPE_CHECKING:
    from mypy_boto3_dynamodb.client import DynamoDBClient

logger = logging.getLogger(__name__)


class DynamoDBStore(KeyValueStore):
    """Key-value store backed by DynamoDB tables via the low-level client.

    Items are returned as plain Python values (numbers as ``Decimal``).
    Resume keys are kept in their tagged form so they can be handed to the
    cursor codec unchanged.
    """

    def __init__(self, client: "DynamoDBClient"):
        """Initialize the DynamoDB store.

        Args:
            client: A boto3 DynamoDB client. Clients are thread-safe and shared.
        """
        self._client = client
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def _deserialize(self, item: dict[str, Any]) -> dict[str, Any]:
        return {name: self._deserializer.deserialize(value) for name, value in item.items()}

    async def _call(self, operation: str, table: str, **kwargs: Any) -> dict[str, Any]:
        method = getattr(self._client, operation)
        try:
            return await to_thread.run_sync(
                partial(method, TableName=table, **kwargs),
                abandon_on_cancel=True,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"DynamoDB {operation} failed on table {table}: {e}") from e

    async def get_item(self, table: str, key: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Fetch one item by primary key.

        Raises:
            StorageError: If the DynamoDB call fails.
        """
        serialized_key = {name: self._serializer.serialize(value) for name, value in key.items()}
        result = await self._call("get_item", table, Key=serialized_key)

        item = result.get("Item")
        if not item:
            return None
        return self._deserialize(item)

    async def scan(
        self,
        table: str,
        limit: int,
        resume_key: Optional[ResumeKey] = None,
    ) -> ScanPage:
        """Scan a page of items.

        Raises:
            StorageError: If the DynamoDB call fails or returns a key the
                cursor codec cannot represent.
        """
        kwargs: dict[str, Any] = {"Limit": limit}
        if resume_key:
            kwargs["ExclusiveStartKey"] = to_attribute_values(resume_key)

        result = await self._call("scan", table, **kwargs)

        items = [self._deserialize(item) for item in result.get("Items", [])]

        last_key = None
        raw_last_key = result.get("LastEvaluatedKey")
        if raw_last_key:
            try:
                last_key = from_attribute_values(raw_last_key)
            except ValueError as e:
                raise StorageError(f"Unsupported LastEvaluatedKey from table {table}: {e}") from e

        logger.debug(f"Scanned {len(items)} items from {table}, more={last_key is not None}")
        return ScanPage(items=items, last_key=last_key)
