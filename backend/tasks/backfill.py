"""
backfill.py — Background job assigning client references to legacy clients.

Uses the same allocation path as interactive client creation, so it is safe
to run while the API is serving requests.
"""

import logging
from contextlib import contextmanager

from flask import has_app_context
from tasks.celery_app import celery

log = logging.getLogger(__name__)


@contextmanager
def _app_context():
    if has_app_context():
        yield
        return

    from app import create_app
    with create_app().app_context():
        yield


def run_backfill(portfolio_code=None, dry_run=False) -> dict:
    """
    Assign a client_ref to every client lacking one, optionally in a single
    portfolio. Each assignment is committed as soon as it is made.
    Needs an app context.
    """
    from database import db
    from models import Client, AuditLog
    from utils.client_refs import get_reference_service

    service = get_reference_service()

    query = Client.query.filter(Client.client_ref.is_(None))
    if portfolio_code is not None:
        query = query.filter(Client.portfolio_code == service.validate_portfolio(portfolio_code))
    legacy = query.all()

    def persist(c):
        db.session.add(AuditLog(
            action="client_ref.issued",
            record_type="client",
            record_id=c.client_id,
            details={"client_ref": c.client_ref, "portfolio_code": c.portfolio_code, "source": "backfill"},
        ))
        db.session.commit()

    try:
        return service.assign_missing_references(legacy, dry_run=dry_run, on_assigned=persist)
    except Exception:
        db.session.rollback()
        raise


@celery.task(bind=True, name="tasks.backfill_client_refs", max_retries=3, default_retry_delay=60)
def backfill_client_refs(self, portfolio_code=None, dry_run=False):
    """
    Celery entry point for run_backfill(). Retried when contention exhausts
    the allocator's retry budget; already-assigned clients are skipped on rerun.
    """
    from utils.errors import ConcurrencyExhaustedError

    try:
        with _app_context():
            summary = run_backfill(portfolio_code=portfolio_code, dry_run=dry_run)
    except ConcurrencyExhaustedError as exc:
        log.warning(f"Backfill hit sustained contention ({exc}), retrying…")
        raise self.retry(exc=exc)

    log.info(f"Backfill finished: {len(summary['assigned'])} assigned, {len(summary['failed'])} failed")
    return summary
