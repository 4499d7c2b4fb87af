# tasks/cache.py

import datetime
import hashlib
import json
import logging
from typing import Callable, List, Optional

from django.conf import settings
from django.core.cache import caches

from .recurrence import RecurrenceRule

logger = logging.getLogger(__name__)


class OccurrenceCache:
    """
    Cache for recurrence expansions.

    Expanding a rule is deterministic, so results are stored under a SHA256
    key derived from the rule, the anchor date and the requested window.
    Cache backend failures are logged and the expansion is computed
    directly.
    """

    def __init__(
        self,
        ttl: int = 86400,
        version: str = "v1",
        cache_alias: str = "default"
    ):
        """
        Args:
            ttl: Time-to-live in seconds (default: 24 hours).
            version: Key version, bumped when the expansion rules change.
            cache_alias: The Django cache alias to use.
        """
        self.ttl = getattr(settings, 'TASKDESK_OCCURRENCE_CACHE_TTL', ttl)
        self.version = version
        self.cache_alias = cache_alias

    @property
    def cache(self):
        return caches[self.cache_alias]

    def get_or_compute(
        self,
        rule: RecurrenceRule,
        anchor: datetime.date,
        compute: Callable[[], List[datetime.date]],
        count: Optional[int] = None,
        until: Optional[datetime.date] = None,
        window_start: Optional[datetime.date] = None,
    ) -> List[datetime.date]:
        """
        Returns the cached expansion or runs `compute` on a miss.

        Dates are stored as ISO strings so the payload survives any cache
        serializer.
        """
        cache_key = self._generate_key(rule, anchor, count, until, window_start)

        try:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Occurrence cache hit: {cache_key}")
                return [datetime.date.fromisoformat(value) for value in cached]
        except Exception as e:
            logger.error(f"Occurrence cache retrieval failure: {str(e)}")

        result = compute()

        try:
            self.cache.set(cache_key, [value.isoformat() for value in result], timeout=self.ttl)
        except Exception as e:
            logger.error(f"Occurrence cache persistence failure: {str(e)}")

        return result

    def _generate_key(self, rule, anchor, count, until, window_start) -> str:
        payload = {
            "rule": rule.cache_payload(),
            "anchor": anchor.isoformat(),
            "count": count,
            "until": until.isoformat() if until else None,
            "window_start": window_start.isoformat() if window_start else None,
            "version": self.version,
        }
        serialized_payload = json.dumps(payload, sort_keys=True)
        hash_digest = hashlib.sha256(serialized_payload.encode()).hexdigest()
        return f"occurrences_{self.version}_{hash_digest}"


occurrence_cache = OccurrenceCache()
