import math
import time
from typing import Callable

from loguru import logger

from .errors import CooldownActive, NotFound
from .storage import ClaimRecord, SnapshotStore

CLAIM_COOLDOWN_MS = 7 * 24 * 3600 * 1000  # 7 days


def now_ms() -> int:
    return int(time.time() * 1000)


def retry_after_seconds(last_claim_at: int, now: int) -> int:
    """Seconds left in a visitor's cooldown, 0 once it has elapsed."""
    elapsed = now - last_claim_at
    if elapsed >= CLAIM_COOLDOWN_MS:
        return 0
    return math.ceil((CLAIM_COOLDOWN_MS - elapsed) / 1000)


class ClaimService:
    """One claim per visitor per cooldown window, whichever link they pick."""

    def __init__(self, store: SnapshotStore, clock: Callable[[], int] = now_ms):
        self.store = store
        self.clock = clock

    async def claim(self, visitor_id: str, link_id: str) -> str:
        async with self.store.mutation() as data:
            found = data.find_link(link_id)
            if not found:
                raise NotFound("Not found")
            _, link = found

            now = self.clock()
            record = data.claims.get(visitor_id)
            if record and record.last_claim_at:
                retry_after = retry_after_seconds(record.last_claim_at, now)
                if retry_after > 0:
                    raise CooldownActive(retry_after)

            data.claims[visitor_id] = ClaimRecord(last_claim_at=now)
            await self.store.save(data)

        logger.info("Visitor {} claimed {}", visitor_id, link_id)
        return link.url
