"""
client_refs.py — Client reference API used by client creation and backfill.

    ref = generate_client_reference(3)       # "3A001"
    parse_client_reference("3A001")          # {"portfolio_code": 3, "alpha": "A", "sequence": 1}

Callers get a reference string or one of InvalidPortfolioError,
ConcurrencyExhaustedError, AllocationSpaceExhaustedError. A claimed reference
is committed in the bucket store before it is returned, so a caller that then
fails to save its client leaves a gap, never a duplicate.
"""

import logging
from collections import Counter

from flask import current_app

from utils.allocator import (
    DEFAULT_BACKOFF_BASE, DEFAULT_BACKOFF_MAX, DEFAULT_MAX_ATTEMPTS, SequenceAllocator,
)
from utils.bucket_store import SqlBucketStore, default_capacity
from utils.errors import (
    AllocationError, AllocationSpaceExhaustedError, ConcurrencyExhaustedError,
)
from utils.portfolio import portfolio_bounds, validate_portfolio_code
from utils.reference import DEFAULT_WIDTH, format_client_ref, parse_client_ref

log = logging.getLogger(__name__)


class ClientReferenceService:
    def __init__(self, allocator: SequenceAllocator, width: int = DEFAULT_WIDTH):
        self.allocator = allocator
        self.width = width

    @classmethod
    def from_config(cls, config, engine):
        """Build the service on the SQL store from a Flask config mapping."""
        width = int(config.get("CLIENT_REF_SEQUENCE_WIDTH", DEFAULT_WIDTH))
        capacity = config.get("CLIENT_REF_BUCKET_CAPACITY")
        capacity = default_capacity(width) if capacity is None else int(capacity)
        if capacity < 1:
            raise ValueError(f"CLIENT_REF_BUCKET_CAPACITY must be at least 1, got {capacity}")
        if capacity > default_capacity(width):
            raise ValueError(
                f"CLIENT_REF_BUCKET_CAPACITY {capacity} does not fit in {width} digits"
            )
        min_code, max_code = portfolio_bounds(config)

        allocator = SequenceAllocator(
            SqlBucketStore(engine, capacity=capacity),
            min_code=min_code,
            max_code=max_code,
            max_attempts=int(config.get("CLIENT_REF_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)),
            backoff_base=float(config.get("CLIENT_REF_BACKOFF_BASE", DEFAULT_BACKOFF_BASE)),
            backoff_max=float(config.get("CLIENT_REF_BACKOFF_MAX", DEFAULT_BACKOFF_MAX)),
        )
        return cls(allocator, width=width)

    @property
    def store(self):
        return self.allocator.store

    def validate_portfolio(self, portfolio_code) -> int:
        return validate_portfolio_code(
            portfolio_code, self.allocator.min_code, self.allocator.max_code
        )

    def generate_client_reference(self, portfolio_code) -> str:
        portfolio_code = self.validate_portfolio(portfolio_code)
        triple = self.allocator.allocate(portfolio_code)
        ref = format_client_ref(triple.portfolio_code, triple.alpha, triple.sequence, self.width)
        log.debug(f"Issued client reference {ref}")
        return ref

    def parse_client_reference(self, ref: str) -> dict:
        return parse_client_ref(ref, self.width).to_dict()

    def assign_missing_references(self, clients, dry_run: bool = False, on_assigned=None) -> dict:
        """
        Give every client without a client_ref a fresh one.

        Clients are processed in (portfolio, created_at, client_id) order so
        reruns over the same data number them the same way. `on_assigned(client)`
        is called after each assignment; the backfill job commits there so
        every claimed reference is persisted straight away.

        A portfolio that runs out of space is reported in `failed` and
        skipped; concurrency exhaustion stops the run (retry the job later).
        """
        pending = sorted(
            (c for c in clients if not c.client_ref),
            key=lambda c: (c.portfolio_code, c.created_at is None, c.created_at, c.client_id),
        )
        summary = {"total": len(pending), "assigned": [], "failed": [], "dry_run": dry_run}

        if dry_run:
            planned = Counter(c.portfolio_code for c in pending)
            summary["planned"] = {str(code): n for code, n in sorted(planned.items())}
            return summary

        exhausted = set()
        for c in pending:
            if c.portfolio_code in exhausted:
                summary["failed"].append(_failure(c, "AllocationSpaceExhaustedError"))
                continue
            try:
                c.client_ref = self.generate_client_reference(c.portfolio_code)
            except ConcurrencyExhaustedError:
                raise
            except AllocationError as e:
                log.warning(f"Backfill skipped client {c.client_id}: {e}")
                if isinstance(e, AllocationSpaceExhaustedError):
                    exhausted.add(c.portfolio_code)
                summary["failed"].append(_failure(c, type(e).__name__))
                continue

            if on_assigned is not None:
                on_assigned(c)
            summary["assigned"].append({
                "client_id": c.client_id,
                "portfolio_code": c.portfolio_code,
                "client_ref": c.client_ref,
            })

        log.info(
            f"Backfill assigned {len(summary['assigned'])} of {summary['total']} "
            f"client references ({len(summary['failed'])} failed)"
        )
        return summary


def _failure(client, kind):
    return {"client_id": client.client_id, "portfolio_code": client.portfolio_code, "error": kind}


# ─── App-bound helpers ───────────────────────────────────────────────────────

def get_reference_service() -> ClientReferenceService:
    """Service for the current Flask app, built once per app."""
    from database import db

    service = current_app.extensions.get("client_refs")
    if service is None:
        service = ClientReferenceService.from_config(current_app.config, db.engine)
        current_app.extensions["client_refs"] = service
    return service


def generate_client_reference(portfolio_code) -> str:
    return get_reference_service().generate_client_reference(portfolio_code)


def parse_client_reference(ref: str) -> dict:
    return get_reference_service().parse_client_reference(ref)
