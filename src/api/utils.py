"""
Shared utilities for the Collab Royalty API.

This module contains common utilities, decorators, and helpers
used across all API blueprints.
"""

import secrets
from dataclasses import dataclass
from functools import wraps
from typing import Any

from flask import current_app, g, jsonify, request

from royalty_errors import RoyaltyLedgerError

# ============================================================
# Constants
# ============================================================

CALLER_HEADER = "X-Caller-Id"
API_KEY_HEADER = "X-API-Key"

MAX_IDENTITY_LENGTH = 256
MAX_RESULTS = 500

# HTTP status per error kind; unlisted kinds fall back to 400
ERROR_STATUS = {
    "invalid_work": 400,
    "invalid_collaborator_set": 400,
    "invalid_percentage_set": 400,
    "invalid_amount": 400,
    "invalid_proposal": 400,
    "insufficient_funds": 402,
    "unauthorized": 403,
    "work_not_found": 404,
    "proposal_not_found": 404,
    "work_already_exists": 409,
    "already_voted": 409,
    "no_pending_revenue": 409,
    "work_locked": 409,
    "proposal_expired": 409,
    "proposal_not_passed": 409,
}


# ============================================================
# Validation Utilities
# ============================================================

def validate_json_schema(
    data: dict[str, Any],
    required_fields: dict[str, type],
    optional_fields: dict[str, type] | None = None,
    max_lengths: dict[str, int] | None = None
) -> tuple:
    """
    Validate JSON payload against a simple schema.

    Args:
        data: The JSON data to validate
        required_fields: Dict mapping field names to expected types
        optional_fields: Dict mapping optional field names to expected types
        max_lengths: Dict mapping field names to maximum string/list lengths

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(data, dict):
        return False, "Request body must be a JSON object"

    for field_name, expected_type in required_fields.items():
        if field_name not in data:
            return False, f"Missing required field: {field_name}"
        if not isinstance(data[field_name], expected_type):
            return False, f"Field '{field_name}' must be of type {expected_type.__name__}"

    if optional_fields:
        for field_name, expected_type in optional_fields.items():
            if field_name in data and data[field_name] is not None:
                if not isinstance(data[field_name], expected_type):
                    return False, f"Field '{field_name}' must be of type {expected_type.__name__}"

    if max_lengths:
        for field_name, max_len in max_lengths.items():
            value = data.get(field_name)
            if isinstance(value, (str, list)) and len(value) > max_len:
                return False, f"Field '{field_name}' exceeds maximum length of {max_len}"

    return True, None


def bounded_limit(value: str | None, max_limit: int = MAX_RESULTS) -> int | None:
    """Parse a ?limit= query parameter, clamped to 1..max_limit."""
    if value is None or value == "":
        return None
    try:
        return max(1, min(int(value), max_limit))
    except ValueError:
        return max_limit


def error_response(error: RoyaltyLedgerError):
    """JSON response and status code for a ledger error."""
    return jsonify(error.to_dict()), ERROR_STATUS.get(error.kind, 400)


# ============================================================
# Authentication Decorators
# ============================================================

def require_api_key(f):
    """Decorator to require API key authentication."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_app.config.get("ROYALTY_REQUIRE_AUTH", True):
            return f(*args, **kwargs)

        provided_key = request.headers.get(API_KEY_HEADER)
        if not provided_key:
            return jsonify({
                "error": "API key required",
                "hint": f"Provide API key in {API_KEY_HEADER} header"
            }), 401

        api_key = current_app.config.get("ROYALTY_API_KEY")
        if not api_key:
            return jsonify({
                "error": "Server API key not configured",
                "hint": "Set ROYALTY_API_KEY environment variable"
            }), 503

        if not secrets.compare_digest(provided_key, api_key):
            return jsonify({"error": "Invalid API key"}), 403

        return f(*args, **kwargs)
    return decorated_function


def require_caller(f):
    """Decorator requiring an X-Caller-Id header; the identity is stored on g.caller."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        caller = (request.headers.get(CALLER_HEADER) or "").strip()
        if not caller:
            return jsonify({
                "error": "Caller identity required",
                "hint": f"Provide the acting identity in {CALLER_HEADER} header"
            }), 400
        if len(caller) > MAX_IDENTITY_LENGTH:
            return jsonify({"error": "Caller identity too long"}), 400
        g.caller = caller
        return f(*args, **kwargs)
    return decorated_function


def require_platform(f):
    """Decorator returning 503 until the platform is initialized."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if managers.platform is None:
            return jsonify({"error": "Royalty platform not initialized"}), 503
        return f(*args, **kwargs)
    return decorated_function


# ============================================================
# Manager Registry
# ============================================================

@dataclass
class ManagerRegistry:
    """
    Registry for the shared platform instance.

    Blueprints read the platform from here so tests and the CLI can swap
    in their own instance.
    """
    platform: Any = None

    def is_ready(self) -> bool:
        return self.platform is not None


# Global manager registry instance
managers = ManagerRegistry()
