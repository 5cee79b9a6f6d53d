"""
portfolios.py — Portfolio administration routes.

A portfolio code is fixed once created; portfolios referenced by any client
cannot be deleted.
"""

import logging
from flask import Blueprint, request, current_app
from sqlalchemy import func

from database import db
from models import Portfolio, Client, AuditLog
from utils.portfolio import (
    is_valid_portfolio_code, portfolio_bounds, valid_portfolio_codes, validate_portfolio_code,
)
from utils.response import success, created, error, not_found, conflict

log = logging.getLogger(__name__)

portfolios_bp = Blueprint("portfolios", __name__)


@portfolios_bp.route("", methods=["GET"])
def list_portfolios():
    """
    GET /api/portfolios
    Returns the configured code range and every stored portfolio with its client
    count. Portfolios left outside the range by a config change are not issuable.
    """
    min_code, max_code = portfolio_bounds(current_app.config)

    counts = dict(
        db.session.query(Client.portfolio_code, func.count(Client.client_id))
        .group_by(Client.portfolio_code)
        .all()
    )
    portfolios = Portfolio.query.order_by(Portfolio.code.asc()).all()

    return success(data={
        "valid_codes": valid_portfolio_codes(min_code, max_code),
        "portfolios": [
            dict(
                p.to_dict(client_count=counts.get(p.code, 0)),
                issuable=is_valid_portfolio_code(p.code, min_code, max_code),
            )
            for p in portfolios
        ],
    })


@portfolios_bp.route("", methods=["POST"])
def create_portfolio():
    """
    POST /api/portfolios
    Body: { "name": str, "code"?: int, "description"?: str }
    Without a code, the next code after the highest existing one is used.
    """
    body = request.get_json(silent=True) or {}
    name = (body.get("name") or "").strip()
    if not name:
        return error("name is required.", 400)

    min_code, max_code = portfolio_bounds(current_app.config)
    code = body.get("code")
    if code is None:
        highest = db.session.query(func.max(Portfolio.code)).scalar()
        code = (highest or min_code - 1) + 1
    code = validate_portfolio_code(code, min_code, max_code)

    if db.session.get(Portfolio, code):
        return conflict(f"Portfolio with code {code} already exists.")

    portfolio = Portfolio(code=code, name=name, description=body.get("description"))
    db.session.add(portfolio)
    db.session.add(AuditLog(
        action="portfolio.created",
        record_type="portfolio",
        record_id=str(code),
        details={"name": name},
    ))
    db.session.commit()

    log.info(f"Portfolio {code} created ({name})")
    return created(data={"portfolio": portfolio.to_dict(client_count=0)})


@portfolios_bp.route("/<int:code>", methods=["DELETE"])
def delete_portfolio(code):
    """DELETE /api/portfolios/<code> — refused while any client references it."""
    portfolio = db.session.get(Portfolio, code)
    if not portfolio:
        return not_found("Portfolio")

    in_use = Client.query.filter_by(portfolio_code=code).count()
    if in_use:
        return conflict(f"Portfolio {code} is referenced by {in_use} client(s).")

    db.session.delete(portfolio)
    db.session.add(AuditLog(
        action="portfolio.deleted",
        record_type="portfolio",
        record_id=str(code),
    ))
    db.session.commit()
    return success(message=f"Portfolio {code} deleted.")
