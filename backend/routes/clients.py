"""
clients.py — Client creation and lookup.

The reference is claimed before the client row is added to the session, so
the claim's own transaction never waits on locks held by this request.
"""

import logging
from flask import Blueprint, request

from database import db
from models import Client, ClientStatus, Portfolio, AuditLog
from utils.client_refs import get_reference_service
from utils.reference import extract_portfolio_code
from utils.response import success, created, error, not_found

log = logging.getLogger(__name__)

clients_bp = Blueprint("clients", __name__)


@clients_bp.route("", methods=["POST"])
def create_client():
    """
    POST /api/clients
    Body: { "name": str, "portfolio_code": int, "status"?: "ACTIVE" | "INACTIVE" | "ARCHIVED" }
    """
    body = request.get_json(silent=True) or {}
    name = (body.get("name") or "").strip()
    if not name:
        return error("name is required.", 400)

    try:
        status = ClientStatus(body.get("status") or ClientStatus.active.value)
    except ValueError:
        return error(f"Unknown status: {body.get('status')}", 400)

    service = get_reference_service()
    portfolio_code = service.validate_portfolio(body.get("portfolio_code"))
    if not db.session.get(Portfolio, portfolio_code):
        return not_found(f"Portfolio {portfolio_code}")

    client_ref = service.generate_client_reference(portfolio_code)

    new_client = Client(
        client_ref=client_ref,
        portfolio_code=portfolio_code,
        name=name,
        status=status,
    )
    db.session.add(new_client)
    db.session.flush()
    db.session.add(AuditLog(
        action="client_ref.issued",
        record_type="client",
        record_id=new_client.client_id,
        details={"client_ref": client_ref, "portfolio_code": portfolio_code},
    ))
    db.session.commit()

    log.info(f"Client {new_client.client_id} created with reference {client_ref}")
    return created(data={"client": new_client.to_dict()})


@clients_bp.route("/<client_ref>", methods=["GET"])
def get_client(client_ref):
    """GET /api/clients/<client_ref>"""
    portfolio_code = extract_portfolio_code(client_ref, get_reference_service().width)
    if portfolio_code is None:
        return error(f"Malformed client reference: {client_ref!r}", 400)

    found = Client.query.filter_by(portfolio_code=portfolio_code, client_ref=client_ref).first()
    if not found:
        return not_found("Client")
    return success(data={"client": found.to_dict()})
