"""
allocator.py — Sequence allocation for client references.

allocate() reads the portfolio's active bucket, claims the observed index
through the store's compare-and-swap, and retries with jittered backoff when
another process got there first. The claimed triple carries the letter the
sequence was issued from, which is the pre-rollover letter when the claim
exhausted its bucket.
"""

import logging
import random
import time

from utils.bucket_store import FIRST_ALPHA, FIRST_INDEX, BucketState
from utils.errors import ConcurrencyExhaustedError, ConflictRetryable
from utils.portfolio import MAX_CODE, MIN_CODE, validate_portfolio_code
from utils.reference import ReferenceTriple

log = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 8
DEFAULT_BACKOFF_BASE = 0.01
DEFAULT_BACKOFF_MAX = 0.5


class SequenceAllocator:
    def __init__(
        self,
        store,
        min_code: int = MIN_CODE,
        max_code: int = MAX_CODE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        backoff_max: float = DEFAULT_BACKOFF_MAX,
        sleep=time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.min_code = min_code
        self.max_code = max_code
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._sleep = sleep

    def allocate(self, portfolio_code) -> ReferenceTriple:
        """
        Claim the next sequence for a portfolio.

        Raises InvalidPortfolioError before touching the store, and
        AllocationSpaceExhaustedError / ConcurrencyExhaustedError from the
        claim loop. Conflicts are retried up to max_attempts times.
        """
        portfolio_code = validate_portfolio_code(portfolio_code, self.min_code, self.max_code)

        for attempt in range(1, self.max_attempts + 1):
            observed = self.store.get_active_bucket(portfolio_code)
            if observed is None:
                observed = BucketState(FIRST_ALPHA, FIRST_INDEX)

            try:
                claim = self.store.claim_and_advance(
                    portfolio_code, observed.alpha, observed.next_index
                )
            except ConflictRetryable as e:
                log.debug(f"allocate({portfolio_code}) attempt {attempt}/{self.max_attempts} lost race: {e}")
                if attempt < self.max_attempts:
                    self._sleep(self._backoff(attempt))
                continue

            if claim.rolled_over or claim.alpha != observed.alpha:
                log.info(
                    f"Portfolio {portfolio_code} rolled over from bucket "
                    f"{observed.alpha} to {claim.new_alpha}"
                )
            return ReferenceTriple(portfolio_code, claim.alpha, claim.claimed_index)

        log.warning(
            f"allocate({portfolio_code}) gave up after {self.max_attempts} conflicting attempts"
        )
        raise ConcurrencyExhaustedError(
            f"Could not allocate a reference for portfolio {portfolio_code} "
            f"after {self.max_attempts} attempts. Try again shortly.",
            portfolio_code=portfolio_code,
            attempts=self.max_attempts,
        )

    def _backoff(self, attempt: int) -> float:
        """Full-jitter exponential backoff."""
        if self.backoff_base <= 0:
            return 0.0
        ceiling = min(self.backoff_max, self.backoff_base * (2 ** (attempt - 1)))
        return random.uniform(0, ceiling)
