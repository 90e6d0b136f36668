import secrets
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request
from loguru import logger

from .errors import RateLimited, Unauthorized

PIN_MAX_ATTEMPTS = 6
PIN_LOCK_SECONDS = 60
# unlocked entries whose last failure is older than this are forgotten
PIN_FAILURE_TTL_SECONDS = 15 * 60


@dataclass
class PinAttempts:
    failure_count: int = 0
    lock_until: float = 0.0
    last_failure: float = 0.0


class PinLockout:
    """
    Per-IP brute force throttle for the admin PIN.

    Lives in process memory only; a restart forgets every lock. All
    methods run on the event loop without awaiting, so no extra locking.
    Stale entries are swept whenever a failure is recorded.
    """

    def __init__(
        self,
        max_attempts: int = PIN_MAX_ATTEMPTS,
        lock_seconds: float = PIN_LOCK_SECONDS,
        failure_ttl: float = PIN_FAILURE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.max_attempts = max_attempts
        self.lock_seconds = lock_seconds
        self.failure_ttl = failure_ttl
        self.clock = clock
        self.attempts: Dict[str, PinAttempts] = {}

    def _is_stale(self, entry: PinAttempts, now: float) -> bool:
        if entry.lock_until > now:
            return False
        if entry.lock_until and not entry.failure_count:
            # lock expired with nothing pending
            return True
        return now - entry.last_failure >= self.failure_ttl

    def prune(self) -> None:
        now = self.clock()
        for ip in [ip for ip, entry in self.attempts.items() if self._is_stale(entry, now)]:
            del self.attempts[ip]

    def is_locked(self, ip: str) -> bool:
        entry = self.attempts.get(ip)
        if not entry:
            return False
        now = self.clock()
        if entry.lock_until > now:
            return True
        if self._is_stale(entry, now):
            del self.attempts[ip]
        return False

    def register_failure(self, ip: str) -> None:
        self.prune()
        now = self.clock()
        entry = self.attempts.setdefault(ip, PinAttempts())
        entry.failure_count += 1
        entry.last_failure = now
        if entry.failure_count >= self.max_attempts:
            entry.lock_until = now + self.lock_seconds
            entry.failure_count = 0
            logger.warning("Admin PIN locked for {} after {} failures", ip, self.max_attempts)

    def clear(self, ip: str) -> None:
        self.attempts.pop(ip, None)


def pin_matches(candidate: Optional[str], secret: str) -> bool:
    if not candidate or not secret:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), secret.encode("utf-8"))


def verify_pin(lockout: PinLockout, ip: str, pin: Optional[str], secret: str) -> None:
    """Raise RateLimited or Unauthorized; return normally on a correct PIN."""
    if lockout.is_locked(ip):
        raise RateLimited()
    if not pin_matches(pin, secret):
        lockout.register_failure(ip)
        logger.info("Rejected admin PIN from {}", ip)
        raise Unauthorized(message="")
    lockout.clear(ip)
    logger.info("Admin session granted to {}", ip)


def client_ip(request: Request, trust_proxy_headers: bool = False) -> str:
    if trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def require_admin(request: Request) -> bool:
    """FastAPI dependency guarding every catalog mutation."""
    if request.session.get("isAdmin"):
        return True
    raise Unauthorized()
