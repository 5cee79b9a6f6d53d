"""
references.py — Client reference routes.

POST /api/references                 → issue a reference for a portfolio
GET  /api/references/buckets         → advisory bucket state (reporting only)
GET  /api/references/<client_ref>    → decompose an existing reference

AllocationError subclasses raised here are turned into JSON by the app-wide
error handler.
"""

from flask import Blueprint, request

from utils.client_refs import get_reference_service
from utils.response import success, created

references_bp = Blueprint("references", __name__)


@references_bp.route("", methods=["POST"])
def issue_reference():
    """
    POST /api/references
    Body: { "portfolio_code": int }
    """
    body = request.get_json(silent=True) or {}
    service = get_reference_service()

    ref = service.generate_client_reference(body.get("portfolio_code"))
    data = {"client_ref": ref}
    data.update(service.parse_client_reference(ref))
    return created(data=data, message="Client reference issued.")


@references_bp.route("/buckets", methods=["GET"])
def list_buckets():
    """
    GET /api/references/buckets?portfolio_code=<n>
    Never use these numbers to build a reference; they may be stale.
    """
    service = get_reference_service()
    portfolio_code = request.args.get("portfolio_code")
    if portfolio_code is not None:
        portfolio_code = service.validate_portfolio(portfolio_code)

    return success(data={
        "capacity": service.store.capacity,
        "buckets": service.store.list_buckets(portfolio_code),
    })


@references_bp.route("/<client_ref>", methods=["GET"])
def parse_reference(client_ref):
    """GET /api/references/<client_ref>"""
    parsed = get_reference_service().parse_client_reference(client_ref)
    parsed["client_ref"] = client_ref
    return success(data=parsed)
