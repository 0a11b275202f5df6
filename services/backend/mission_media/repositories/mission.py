"""Mission repository: read-only access to the mission table."""

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from mission_media.errors import NotFoundError, UpstreamError, ValidationError
from mission_media.pagination import decode_cursor, encode_cursor
from mission_media.schemas import MissionListResponse, MissionRecord
from mission_media.storage.base import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def resolve_page_size(
    count: Optional[int],
    default: int = DEFAULT_PAGE_SIZE,
    maximum: int = MAX_PAGE_SIZE,
) -> int:
    """Resolve a requested page size.

    None selects the default, values above the maximum are clamped to it.

    Raises:
        ValidationError: If the count is zero or negative.
    """
    if count is None:
        return default
    if count <= 0:
        raise ValidationError("count must be a positive integer")
    return min(count, maximum)


class MissionRepository:
    """Lists and looks up mission records in a key-value table."""

    def __init__(
        self,
        store: KeyValueStore,
        table: str,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        """Initialize the repository.

        Args:
            store: Key-value store client.
            table: Mission table name.
            default_page_size: Page size when the client gives none.
            max_page_size: Upper bound for a requested page size.
        """
        self.store = store
        self.table = table
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    async def list_missions(
        self,
        count: Optional[int] = None,
        next_token: Optional[str] = None,
    ) -> MissionListResponse:
        """Return one page of missions.

        Args:
            count: Requested page size.
            next_token: Token from the previous page; None or empty starts
                from the beginning.

        Returns:
            MissionListResponse: The page and, if more remain, the next token.

        Raises:
            ValidationError: If the count is not positive.
            InvalidToken: If the token cannot be decoded.
            UpstreamError: If the scan fails or returns undecodable items.
        """
        limit = resolve_page_size(count, self.default_page_size, self.max_page_size)
        resume_key = decode_cursor(next_token) if next_token else None

        try:
            page = await self.store.scan(self.table, limit, resume_key)
        except StorageError as e:
            logger.error(f"Mission scan failed table={self.table} limit={limit}: {e}")
            raise UpstreamError("failed to retrieve missions") from e

        missions = [self._to_record(item, "failed to process mission data") for item in page.items]

        token = encode_cursor(page.last_key) if page.last_key else None
        logger.info(f"Listing {len(missions)} missions, more={token is not None}")
        return MissionListResponse(missions=missions, next_token=token)

    async def get_mission(self, mission_id: str) -> MissionRecord:
        """Look up one mission by id.

        Raises:
            ValidationError: If the id is empty.
            NotFoundError: If no mission has this id.
            UpstreamError: If the lookup fails.
        """
        if not mission_id or not mission_id.strip():
            raise ValidationError("missing id")

        try:
            item = await self.store.get_item(self.table, {"id": mission_id})
        except StorageError as e:
            logger.error(f"Mission lookup failed table={self.table} id={mission_id}: {e}")
            raise UpstreamError("failed to retrieve mission") from e

        if item is None:
            logger.warning(f"Mission not found: {mission_id}")
            raise NotFoundError("mission not found")

        return self._to_record(item, "failed to retrieve mission")

    def _to_record(self, item: dict[str, Any], message: str) -> MissionRecord:
        try:
            return MissionRecord.model_validate(item)
        except PydanticValidationError as e:
            logger.error(f"Invalid mission item id={item.get('id')!r} in {self.table}: {e}")
            raise UpstreamError(message) from e
