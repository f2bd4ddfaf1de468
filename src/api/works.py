"""
Collab Royalty - Works API Blueprint

REST endpoints for registering works, taking payments and distributing
revenue.

Provides access to:
- Work registration and lookup
- Collaborator lists and royalty shares
- Revenue ledgers
- Payment intake and distribution
"""

from flask import Blueprint, g, jsonify, request

from royalty_errors import WorkNotFoundError
from work_registry import MAX_COLLABORATORS, MAX_TITLE_LENGTH

from .utils import (
    managers,
    require_api_key,
    require_caller,
    require_platform,
    validate_json_schema,
)

works_bp = Blueprint("works", __name__)


# =============================================================================
# Registration
# =============================================================================


@works_bp.route("/works", methods=["POST"])
@require_api_key
@require_platform
@require_caller
def create_work():
    """
    Register a collaborative work. The caller becomes its creator.

    Request body:
        {
            "title": "Night Drive",
            "collaborators": ["alice", "bob", "carol"],
            "percentages": [4000, 3500, 2500],      // basis points, sum 10000
            "governance_enabled": true             // optional, default false
        }

    Returns:
        201 with the new work
    """
    data = request.get_json(silent=True)

    is_valid, error_msg = validate_json_schema(
        data,
        required_fields={"title": str, "collaborators": list, "percentages": list},
        optional_fields={"governance_enabled": bool},
        max_lengths={
            "title": MAX_TITLE_LENGTH,
            "collaborators": MAX_COLLABORATORS,
            "percentages": MAX_COLLABORATORS,
        },
    )
    if not is_valid:
        return jsonify({"error": error_msg}), 400

    platform = managers.platform
    work_id = platform.create_work(
        g.caller,
        data["title"],
        data["collaborators"],
        data["percentages"],
        governance_enabled=data.get("governance_enabled") or False,
    )
    return jsonify({"work_id": work_id, "work": platform.work_summary(work_id)}), 201


@works_bp.route("/works", methods=["GET"])
@require_api_key
@require_platform
def list_works():
    """
    List works.

    Query params:
        collaborator: Only works this identity is a collaborator of
    """
    collaborator = request.args.get("collaborator")
    works = managers.platform.list_works(collaborator=collaborator)
    return jsonify({"count": len(works), "works": [w.to_dict() for w in works]})


@works_bp.route("/works/<int:work_id>", methods=["GET"])
@require_api_key
@require_platform
def get_work(work_id: int):
    """Work details with collaborators, shares and revenue."""
    summary = managers.platform.work_summary(work_id)
    if summary is None:
        raise WorkNotFoundError(work_id, action="get_work")
    return jsonify(summary)


@works_bp.route("/works/<int:work_id>/collaborators", methods=["GET"])
@require_api_key
@require_platform
def get_collaborators(work_id: int):
    collaborators = managers.platform.get_work_collaborators(work_id)
    if collaborators is None:
        raise WorkNotFoundError(work_id, action="get_work_collaborators")
    return jsonify({"work_id": work_id, "collaborators": collaborators})


@works_bp.route("/works/<int:work_id>/shares/<collaborator>", methods=["GET"])
@require_api_key
@require_platform
def get_share(work_id: int, collaborator: str):
    platform = managers.platform
    if platform.get_work(work_id) is None:
        raise WorkNotFoundError(work_id, action="get_royalty_share")

    share = platform.get_royalty_share(work_id, collaborator)
    if share is None:
        return jsonify({
            "error": "share_not_found",
            "message": f"{collaborator} is not a collaborator of work {work_id}",
        }), 404
    return jsonify(share.to_dict())


@works_bp.route("/works/<int:work_id>/revenue", methods=["GET"])
@require_api_key
@require_platform
def get_revenue(work_id: int):
    """Revenue ledger of a work, plus its most recent distribution."""
    platform = managers.platform
    ledger = platform.get_work_revenue(work_id)
    if ledger is None:
        raise WorkNotFoundError(work_id, action="get_work_revenue")

    last = platform.last_distribution(work_id)
    return jsonify({
        **ledger.to_dict(),
        "balanced": ledger.is_balanced(),
        "last_distribution_result": last.to_dict() if last else None,
    })


# =============================================================================
# Payments & Distribution
# =============================================================================


@works_bp.route("/works/<int:work_id>/payments", methods=["POST"])
@require_api_key
@require_platform
@require_caller
def receive_payment(work_id: int):
    """
    Pay a work. Funds are drawn from the caller's account.

    Request body:
        {"amount": 100000000}   // minimal units

    Returns:
        Gross amount, fee, net credited and the updated ledger
    """
    data = request.get_json(silent=True)

    is_valid, error_msg = validate_json_schema(data, required_fields={"amount": int})
    if not is_valid:
        return jsonify({"error": error_msg}), 400

    platform = managers.platform
    amount = data["amount"]
    net = platform.receive_payment(g.caller, work_id, amount)
    return jsonify({
        "work_id": work_id,
        "payer": g.caller,
        "amount": amount,
        "fee": amount - net,
        "net": net,
        "ledger": platform.get_work_revenue(work_id).to_dict(),
    })


@works_bp.route("/works/<int:work_id>/distributions", methods=["POST"])
@require_api_key
@require_platform
def distribute_revenue(work_id: int):
    """
    Distribute a work's pending revenue to its collaborators.

    Returns:
        The distribution with each collaborator's payout
    """
    platform = managers.platform
    platform.distribute_revenue(work_id)
    return jsonify(platform.last_distribution(work_id).to_dict())
