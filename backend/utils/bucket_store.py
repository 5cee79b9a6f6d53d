"""
bucket_store.py — Durable counter state for client references.

One row per (portfolio_code, alpha) holds the next sequence number to issue.
The active bucket of a portfolio is the one with the highest letter.

claim_and_advance() is the only code path that writes a bucket. It is an
optimistic compare-and-swap: the caller passes the state it observed, and
the claim either commits the whole transition or raises ConflictRetryable
having changed nothing.

Transitions (capacity = highest sequence per bucket, 999 by default):
    index <  capacity            → issue index, bucket moves to index + 1
    index == capacity, alpha < Z → issue index, bucket sealed, next letter opened at 1
    index == capacity, alpha = Z → issue index, bucket sealed, nothing opened
    index >  capacity, alpha < Z → bucket already sealed (capacity lowered):
                                   issue 1 from a newly opened next letter
    index >  capacity, alpha = Z → AllocationSpaceExhaustedError
"""

import logging
import threading
from typing import NamedTuple, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, OperationalError

from database import session_factory
from models import ReferenceBucket
from utils.errors import AllocationSpaceExhaustedError, ConflictRetryable
from utils.reference import DEFAULT_WIDTH, max_sequence, next_alpha

log = logging.getLogger(__name__)

FIRST_ALPHA = "A"
FIRST_INDEX = 1


class BucketState(NamedTuple):
    alpha: str
    next_index: int


class Claim(NamedTuple):
    portfolio_code: int
    alpha: str            # letter the claimed sequence belongs to
    claimed_index: int
    new_alpha: str        # active bucket after the claim
    new_index: int

    @property
    def rolled_over(self):
        return self.new_alpha != self.alpha


class Transition(NamedTuple):
    claim: Claim
    # Value the observed row moves to; None leaves it untouched
    current_index: Optional[int]
    # Row to open for the next letter, if any
    successor: Optional[BucketState]


def plan_claim(portfolio_code: int, alpha: str, index: int, capacity: int) -> Transition:
    """Work out what claiming (alpha, index) does to the portfolio's buckets."""
    successor_alpha = next_alpha(alpha)

    if index < capacity:
        claim = Claim(portfolio_code, alpha, index, alpha, index + 1)
        return Transition(claim, index + 1, None)

    if index == capacity:
        if successor_alpha is None:
            claim = Claim(portfolio_code, alpha, index, alpha, capacity + 1)
            return Transition(claim, capacity + 1, None)
        claim = Claim(portfolio_code, alpha, index, successor_alpha, FIRST_INDEX)
        return Transition(claim, capacity + 1, BucketState(successor_alpha, FIRST_INDEX))

    if successor_alpha is None:
        raise AllocationSpaceExhaustedError(
            f"Portfolio {portfolio_code} has used every reference from A to Z.",
            portfolio_code=portfolio_code,
        )
    claim = Claim(portfolio_code, successor_alpha, FIRST_INDEX, successor_alpha, FIRST_INDEX + 1)
    return Transition(claim, None, BucketState(successor_alpha, FIRST_INDEX + 1))


def default_capacity(width: int = DEFAULT_WIDTH) -> int:
    return max_sequence(width)


def _checked_capacity(capacity):
    if capacity is None:
        return default_capacity()
    if capacity < 1:
        raise ValueError(f"Bucket capacity must be at least 1, got {capacity}")
    return capacity


# ─────────────────────────────────────────────
# SQL store (production)
# ─────────────────────────────────────────────

class SqlBucketStore:
    """
    Bucket store on the reference_buckets table.

    Every call opens its own short session so a claim commits independently
    of any request-scoped session. Works on PostgreSQL and SQLite.
    """

    def __init__(self, engine, capacity: int = None):
        self.engine = engine
        self.capacity = _checked_capacity(capacity)
        self._sessions = session_factory(engine)

    def get_active_bucket(self, portfolio_code: int) -> Optional[BucketState]:
        with self._sessions() as session:
            row = session.execute(
                select(ReferenceBucket.alpha, ReferenceBucket.next_index)
                .where(ReferenceBucket.portfolio_code == portfolio_code)
                .order_by(ReferenceBucket.alpha.desc())
                .limit(1)
            ).first()
        if row is None:
            return None
        return BucketState(row.alpha, row.next_index)

    def list_buckets(self, portfolio_code: int = None) -> list:
        query = select(
            ReferenceBucket.portfolio_code, ReferenceBucket.alpha, ReferenceBucket.next_index
        ).order_by(ReferenceBucket.portfolio_code, ReferenceBucket.alpha)
        if portfolio_code is not None:
            query = query.where(ReferenceBucket.portfolio_code == portfolio_code)

        with self._sessions() as session:
            rows = session.execute(query).all()
        return [
            {"portfolio_code": r.portfolio_code, "alpha": r.alpha, "next_index": r.next_index}
            for r in rows
        ]

    def claim_and_advance(self, portfolio_code: int, expected_alpha: str, expected_index: int) -> Claim:
        transition = plan_claim(portfolio_code, expected_alpha, expected_index, self.capacity)

        session = self._sessions()
        try:
            with session.begin():
                if transition.current_index is not None:
                    self._swap_index(
                        session, portfolio_code, expected_alpha,
                        expected_index, transition.current_index,
                    )
                if transition.successor is not None:
                    session.execute(
                        insert(ReferenceBucket).values(
                            portfolio_code=portfolio_code,
                            alpha=transition.successor.alpha,
                            next_index=transition.successor.next_index,
                        )
                    )
        except IntegrityError:
            raise ConflictRetryable(portfolio_code, expected_alpha, expected_index, reason="duplicate bucket")
        except OperationalError as e:
            # Lock timeouts / serialization failures: nothing was committed
            log.debug(f"claim on {portfolio_code}{expected_alpha} hit contention: {e}")
            raise ConflictRetryable(portfolio_code, expected_alpha, expected_index, reason="contention")
        finally:
            session.close()

        return transition.claim

    def _swap_index(self, session, portfolio_code, alpha, expected_index, new_index):
        result = session.execute(
            update(ReferenceBucket)
            .where(
                ReferenceBucket.portfolio_code == portfolio_code,
                ReferenceBucket.alpha == alpha,
                ReferenceBucket.next_index == expected_index,
            )
            .values(next_index=new_index)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        exists = session.execute(
            select(ReferenceBucket.next_index).where(
                ReferenceBucket.portfolio_code == portfolio_code,
                ReferenceBucket.alpha == alpha,
            )
        ).first()
        if exists is not None or (alpha, expected_index) != (FIRST_ALPHA, FIRST_INDEX):
            raise ConflictRetryable(portfolio_code, alpha, expected_index)

        # First allocation for this portfolio
        session.execute(
            insert(ReferenceBucket).values(
                portfolio_code=portfolio_code, alpha=alpha, next_index=new_index
            )
        )


# ─────────────────────────────────────────────
# In-memory store (single process: simulations, tests)
# ─────────────────────────────────────────────

class MemoryBucketStore:
    """Same contract as SqlBucketStore, held in a dict behind a lock."""

    def __init__(self, capacity: int = None, rows: dict = None):
        self.capacity = _checked_capacity(capacity)
        self._rows = dict(rows or {})    # (portfolio_code, alpha) -> next_index
        self._lock = threading.Lock()

    def get_active_bucket(self, portfolio_code: int) -> Optional[BucketState]:
        with self._lock:
            letters = [alpha for (code, alpha) in self._rows if code == portfolio_code]
            if not letters:
                return None
            alpha = max(letters)
            return BucketState(alpha, self._rows[(portfolio_code, alpha)])

    def list_buckets(self, portfolio_code: int = None) -> list:
        with self._lock:
            return [
                {"portfolio_code": code, "alpha": alpha, "next_index": index}
                for (code, alpha), index in sorted(self._rows.items())
                if portfolio_code is None or code == portfolio_code
            ]

    def claim_and_advance(self, portfolio_code: int, expected_alpha: str, expected_index: int) -> Claim:
        transition = plan_claim(portfolio_code, expected_alpha, expected_index, self.capacity)
        key = (portfolio_code, expected_alpha)

        with self._lock:
            current = self._rows.get(key)
            if transition.current_index is not None:
                if current is None and (expected_alpha, expected_index) != (FIRST_ALPHA, FIRST_INDEX):
                    raise ConflictRetryable(portfolio_code, expected_alpha, expected_index)
                if current is not None and current != expected_index:
                    raise ConflictRetryable(portfolio_code, expected_alpha, expected_index)

            if transition.successor is not None:
                if (portfolio_code, transition.successor.alpha) in self._rows:
                    raise ConflictRetryable(
                        portfolio_code, expected_alpha, expected_index, reason="duplicate bucket"
                    )
                self._rows[(portfolio_code, transition.successor.alpha)] = transition.successor.next_index

            if transition.current_index is not None:
                self._rows[key] = transition.current_index

        return transition.claim
