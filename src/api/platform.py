"""
Collab Royalty - Platform API Blueprint

Platform-wide endpoints:
- Fee rate and configuration
- Aggregate statistics
- Audit trail of ledger events
- Account balances and test deposits on the in-memory transfer ledger
"""

from flask import Blueprint, current_app, jsonify, request

from settlement import LocalTransferLedger

from .utils import (
    bounded_limit,
    managers,
    require_api_key,
    require_platform,
    validate_json_schema,
)

platform_bp = Blueprint("platform", __name__, url_prefix="/platform")


@platform_bp.route("/fee", methods=["GET"])
@require_api_key
@require_platform
def get_fee():
    fee_bps = managers.platform.get_platform_fee()
    return jsonify({"fee_bps": fee_bps, "fee_percent": fee_bps / 100})


@platform_bp.route("/stats", methods=["GET"])
@require_api_key
@require_platform
def get_stats():
    return jsonify(managers.platform.get_statistics())


@platform_bp.route("/events", methods=["GET"])
@require_api_key
@require_platform
def get_events():
    """
    Ledger events, oldest first.

    Query params:
        type: Event type (work_created, payment_received, ...)
        work_id: Only events of this work
        limit: Most recent N events
    """
    events = managers.platform.get_events(
        event_type=request.args.get("type"),
        work_id=request.args.get("work_id", type=int),
        limit=bounded_limit(request.args.get("limit")),
    )
    return jsonify({"count": len(events), "events": [e.to_dict() for e in events]})


# =============================================================================
# Accounts (in-memory transfer ledger only)
# =============================================================================


def _local_ledger() -> LocalTransferLedger | None:
    transfers = managers.platform.transfers
    return transfers if isinstance(transfers, LocalTransferLedger) else None


@platform_bp.route("/accounts/<account>", methods=["GET"])
@require_api_key
@require_platform
def get_account(account: str):
    ledger = _local_ledger()
    if ledger is None:
        return jsonify({"error": "Balances are held by an external settlement backend"}), 501
    return jsonify({"account": account, "balance": ledger.balance(account)})


@platform_bp.route("/accounts/<account>/deposits", methods=["POST"])
@require_api_key
@require_platform
def deposit(account: str):
    """
    Credit an account on the in-memory ledger. Disabled unless
    ROYALTY_ENABLE_DEPOSITS is set.

    Request body:
        {"amount": 1000}
    """
    if not current_app.config.get("ROYALTY_ENABLE_DEPOSITS", False):
        return jsonify({"error": "Deposits are disabled"}), 403

    ledger = _local_ledger()
    if ledger is None:
        return jsonify({"error": "Balances are held by an external settlement backend"}), 501

    data = request.get_json(silent=True)
    is_valid, error_msg = validate_json_schema(data, required_fields={"amount": int})
    if not is_valid:
        return jsonify({"error": error_msg}), 400

    try:
        ledger.mint(account, data["amount"])
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"account": account, "balance": ledger.balance(account)})
