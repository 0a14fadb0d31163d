"""Caching of computed broadsheets."""

from cachetools import TTLCache

from mockgrade.config import settings
from mockgrade.schemas.statistics import BroadsheetResult

# Latest computed broadsheet per (hub_id, series)
broadsheet_cache: TTLCache[tuple[str, str], BroadsheetResult] = TTLCache(
    maxsize=settings.broadsheet_cache_size, ttl=settings.broadsheet_cache_ttl
)

# Bumped on every change to a hub; results computed under an older version are not cached
_hub_versions: dict[str, int] = {}


def hub_version(hub_id: str) -> int:
    return _hub_versions.get(hub_id, 0)


def get_cached_broadsheet(hub_id: str, series: str) -> BroadsheetResult | None:
    """Get a computed broadsheet from cache."""
    return broadsheet_cache.get((hub_id, series))


def set_cached_broadsheet(hub_id: str, result: BroadsheetResult, version: int) -> bool:
    """Cache a broadsheet computed from inputs read at `version`. Returns False if the inputs are stale."""
    if version != hub_version(hub_id):
        return False
    broadsheet_cache[(hub_id, result.series)] = result
    return True


def invalidate_hub_broadsheets(hub_id: str) -> None:
    """Drop every cached broadsheet of a hub."""
    _hub_versions[hub_id] = hub_version(hub_id) + 1
    for key in [key for key in list(broadsheet_cache.keys()) if key[0] == hub_id]:
        broadsheet_cache.pop(key, None)
