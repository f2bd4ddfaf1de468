"""
Collab Royalty - Governance API Blueprint

REST endpoints for proposals and votes on governance-enabled works.
"""

from flask import Blueprint, g, jsonify, request

from governance import MAX_DESCRIPTION_LENGTH, ProposalStatus
from royalty_errors import ProposalNotFoundError

from .utils import (
    MAX_IDENTITY_LENGTH,
    managers,
    require_api_key,
    require_caller,
    require_platform,
    validate_json_schema,
)

proposals_bp = Blueprint("proposals", __name__)


@proposals_bp.route("/works/<int:work_id>/proposals", methods=["POST"])
@require_api_key
@require_platform
@require_caller
def create_proposal(work_id: int):
    """
    Open a proposal on a work. The caller must be one of its collaborators.

    Request body:
        {
            "proposal_type": "royalty-update",   // or add-collaborator, remove-collaborator
            "target": "carol",                   // royalty-update target
            "new_percentage": 4500,              // basis points
            "description": "..."                 // optional
        }

    Returns:
        201 with the new proposal
    """
    data = request.get_json(silent=True)

    is_valid, error_msg = validate_json_schema(
        data,
        required_fields={"proposal_type": str},
        optional_fields={"target": str, "new_percentage": int, "description": str},
        max_lengths={"target": MAX_IDENTITY_LENGTH, "description": MAX_DESCRIPTION_LENGTH},
    )
    if not is_valid:
        return jsonify({"error": error_msg}), 400

    platform = managers.platform
    proposal_id = platform.create_proposal(
        g.caller,
        work_id,
        data["proposal_type"],
        target=data.get("target"),
        new_percentage=data.get("new_percentage"),
        description=data.get("description") or "",
    )
    proposal = platform.get_proposal(proposal_id)
    return jsonify({
        "proposal_id": proposal_id,
        "proposal": proposal.to_dict(now=platform.clock.now()),
    }), 201


@proposals_bp.route("/proposals", methods=["GET"])
@require_api_key
@require_platform
def list_proposals():
    """
    List proposals.

    Query params:
        work_id: Only proposals on this work
        status: Derived status (active, passed, rejected, expired, executed)
    """
    work_id = request.args.get("work_id", type=int)

    status = None
    if request.args.get("status"):
        try:
            status = ProposalStatus(request.args["status"])
        except ValueError:
            return jsonify({"error": f"Invalid status: {request.args['status']}"}), 400

    platform = managers.platform
    now = platform.clock.now()
    proposals = platform.list_proposals(work_id=work_id, status=status)
    return jsonify({
        "count": len(proposals),
        "block": now,
        "proposals": [p.to_dict(now=now) for p in proposals],
    })


@proposals_bp.route("/proposals/<int:proposal_id>", methods=["GET"])
@require_api_key
@require_platform
def get_proposal(proposal_id: int):
    platform = managers.platform
    proposal = platform.get_proposal(proposal_id)
    if proposal is None:
        raise ProposalNotFoundError(proposal_id, action="get_proposal")
    return jsonify(proposal.to_dict(now=platform.clock.now()))


@proposals_bp.route("/proposals/<int:proposal_id>/votes", methods=["POST"])
@require_api_key
@require_platform
@require_caller
def vote(proposal_id: int):
    """
    Cast the caller's vote.

    Request body:
        {"choice": true}   // true = for, false = against
    """
    data = request.get_json(silent=True)

    is_valid, error_msg = validate_json_schema(data, required_fields={"choice": bool})
    if not is_valid:
        return jsonify({"error": error_msg}), 400

    platform = managers.platform
    platform.vote_on_proposal(g.caller, proposal_id, data["choice"])
    return jsonify({
        "vote": platform.get_vote(proposal_id, g.caller).to_dict(),
        "proposal": platform.get_proposal(proposal_id).to_dict(now=platform.clock.now()),
    })


@proposals_bp.route("/proposals/<int:proposal_id>/votes/<voter>", methods=["GET"])
@require_api_key
@require_platform
def get_vote(proposal_id: int, voter: str):
    platform = managers.platform
    if platform.get_proposal(proposal_id) is None:
        raise ProposalNotFoundError(proposal_id, action="get_vote")

    record = platform.get_vote(proposal_id, voter)
    if record is None:
        return jsonify({
            "error": "vote_not_found",
            "message": f"{voter} has not voted on proposal {proposal_id}",
        }), 404
    return jsonify(record.to_dict())


@proposals_bp.route("/proposals/<int:proposal_id>/execute", methods=["POST"])
@require_api_key
@require_platform
@require_caller
def execute(proposal_id: int):
    """Execute a passed, unexpired proposal. Any caller may execute."""
    platform = managers.platform
    platform.execute_proposal(g.caller, proposal_id)
    proposal = platform.get_proposal(proposal_id)
    return jsonify({
        "proposal": proposal.to_dict(now=platform.clock.now()),
        "share_total": platform.registry.share_total(proposal.work_id),
    })
