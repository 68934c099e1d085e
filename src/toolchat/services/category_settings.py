import logging
from typing import Dict, Mapping

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..categories import CATEGORY_LABELS
from .redis import RedisStore, get_redis_store

logger = logging.getLogger(__name__)

SETTINGS_KEY = "category-settings"


def default_category_state() -> Dict[str, bool]:
    return {category: True for category in CATEGORY_LABELS}


def merge_category_state(
    stored: Mapping[str, bool], requested: Mapping[str, bool]
) -> Dict[str, bool]:
    """Combine stored and per-request enablement; disabled in either means disabled."""
    merged = dict(stored)
    for category, enabled in requested.items():
        if enabled is False or merged.get(category) is False:
            merged[category] = False
        else:
            merged.setdefault(category, True)
    return merged


class CategorySettingsService:
    """Persisted per-category enable/disable map (Redis when configured, else in memory)."""

    def __init__(self, store: RedisStore | None = None) -> None:
        self._store = store
        self._state: Dict[str, bool] = default_category_state()

    @property
    def persistent(self) -> bool:
        return self._store is not None and self._store.connected

    async def get_state(self) -> Dict[str, bool]:
        if self.persistent:
            data = await self._store.get_json(SETTINGS_KEY)
            if isinstance(data, dict):
                self._state = {
                    **default_category_state(),
                    **{str(k): bool(v) for k, v in data.items()},
                }
        return dict(self._state)

    async def update(self, enabled: Mapping[str, bool]) -> Dict[str, bool]:
        state = await self.get_state()
        for category, value in enabled.items():
            state[str(category)] = bool(value)
        self._state = state
        if self.persistent and not await self._store.set_json(SETTINGS_KEY, state):
            logger.warning("Category settings kept in memory only; Redis write failed")
        logger.info(
            "Category settings updated; disabled: %s",
            sorted(c for c, v in state.items() if not v) or "none",
        )
        return dict(state)

    async def effective_state(self, requested: Mapping[str, bool]) -> Dict[str, bool]:
        return merge_category_state(await self.get_state(), requested)

    async def close(self) -> None:
        if self._store is not None:
            await self._store.close()


async def build_category_settings_service() -> CategorySettingsService:
    """Connect Redis when configured; fall back to in-memory settings otherwise."""
    store = get_redis_store()
    if store is not None:
        try:
            await store.connect()
        except (RedisConnectionError, RedisTimeoutError, ConnectionError, TimeoutError) as e:
            logger.warning("Category settings store unavailable (Redis): %s", e)
            store = None
    return CategorySettingsService(store)
