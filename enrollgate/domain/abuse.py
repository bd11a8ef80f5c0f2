"""
Abuse gate - Per-client rate limiting and bot-check policy.

Rate limiting uses fixed windows keyed by (bucket, client identity),
counted by the `limits` library over in-process memory storage. Each
bucket has its own budget sized to the abuse cost of the operation it
protects:

- API: generic traffic, high budget
- ISSUE: sends real email, low budget over a long window
- CONFIRM: bounds brute-force guessing of the 900000-code space

The bot check is three-valued (HUMAN, NOT_HUMAN, SKIP) so the fail-open
policy for an unconfigured provider is explicit.
"""

import logging
import math
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum

from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter

from .ports import BotChecker, BotVerdict

logger = logging.getLogger(__name__)


class RateBucket(str, Enum):
    """Named rate-limit scopes."""

    API = "api"
    ISSUE = "issue"
    CONFIRM = "confirm"


@dataclass(frozen=True)
class RatePolicy:
    """Budget of `limit` requests per `window_seconds` for one client."""

    limit: int
    window_seconds: int

    def __post_init__(self) -> None:
        if self.limit < 1 or self.window_seconds < 1:
            raise ValueError("rate policy limit and window must be positive")

    def as_item(self) -> RateLimitItem:
        return RateLimitItemPerSecond(self.limit, self.window_seconds)


@dataclass(frozen=True)
class RateDecision:
    """Outcome of a rate check. retry_after is 0 when allowed."""

    allowed: bool
    retry_after: int = 0


class AbuseGate:
    """
    Rate limiting and bot-check policy, injected into the enrollment service.

    Holds its own counter storage; nothing here is module-global. Every
    key expires on its own bucket's window, so a long ISSUE window is
    never cut short by traffic in a shorter bucket.
    """

    def __init__(
        self,
        policies: Mapping[RateBucket, RatePolicy],
        storage: Storage | None = None,
        bot_checker: BotChecker | None = None,
        bypass_tokens: Iterable[str] = (),
        test_mode: bool = False,
    ) -> None:
        missing = set(RateBucket) - set(policies)
        if missing:
            raise ValueError(f"missing rate policies for: {sorted(b.value for b in missing)}")

        self._items = {bucket: policy.as_item() for bucket, policy in policies.items()}
        self._storage = storage if storage is not None else MemoryStorage()
        self._limiter = FixedWindowRateLimiter(self._storage)
        self._bot_checker = bot_checker
        self._bypass_tokens = frozenset(bypass_tokens)
        self._test_mode = test_mode

    def check_rate(self, client_key: str, bucket: RateBucket) -> RateDecision:
        """Count a request from client_key against bucket."""
        item = self._items[bucket]
        if self._limiter.hit(item, bucket.value, client_key):
            return RateDecision(allowed=True)

        stats = self._limiter.get_window_stats(item, bucket.value, client_key)
        retry_after = max(1, math.ceil(stats.reset_time - time.time()))
        logger.warning(
            "[RATE LIMIT] bucket=%s client=%s retry_after=%ss",
            bucket.value,
            client_key,
            retry_after,
        )
        return RateDecision(allowed=False, retry_after=retry_after)

    def reset(self) -> None:
        """Drop all counters."""
        self._storage.reset()

    def check_human(self, token: str | None) -> BotVerdict:
        """
        Decide whether the client behind token is human.

        - No provider configured: SKIP (fail open)
        - Test mode and a bypass token: SKIP
        - Otherwise the provider verdict; provider errors are NOT_HUMAN
        """
        if self._bot_checker is None:
            return BotVerdict.SKIP

        if self._test_mode and token is not None and token in self._bypass_tokens:
            logger.debug("Bot check bypassed with test token")
            return BotVerdict.SKIP

        try:
            verdict = self._bot_checker.score(token)
        except Exception:
            logger.exception("[SECURITY] Bot check provider raised")
            return BotVerdict.NOT_HUMAN

        if verdict is BotVerdict.SKIP:
            # Only the gate may decide to skip
            return BotVerdict.NOT_HUMAN
        return verdict
