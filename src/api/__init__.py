"""
Collab Royalty API Package.

Flask blueprints for the royalty ledger.

Blueprints:
- monitoring: Health checks and metrics
- works: Work registration, payments and distribution
- proposals: Governance proposals and votes
- platform: Fee, statistics, events and accounts
"""

import os

from flask import Flask, jsonify

from monitoring import get_logger, setup_request_logging
from royalty_errors import RoyaltyLedgerError

from api.monitoring import monitoring_bp
from api.platform import platform_bp
from api.proposals import proposals_bp
from api.utils import error_response, managers
from api.works import works_bp

logger = get_logger(__name__)

# List of all blueprints for registration
# Tuple format: (blueprint, url_prefix)
ALL_BLUEPRINTS = [
    (monitoring_bp, ""),
    (works_bp, ""),
    (proposals_bp, ""),
    (platform_bp, None),  # blueprint has /platform prefix
]


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    for blueprint, url_prefix in ALL_BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix=url_prefix)


def register_error_handlers(app):
    """Render ledger errors and unknown routes as JSON."""

    @app.errorhandler(RoyaltyLedgerError)
    def ledger_error(error):
        return error_response(error)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Endpoint not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({"error": "Internal server error"}), 500


def init_managers(platform=None):
    """
    Initialize the shared platform instance.

    Args:
        platform: Platform to serve; a new one configured from the
            environment is created if omitted

    Returns:
        The platform now held by the manager registry
    """
    if platform is None:
        from royalty_platform import CollaborativeRoyaltyPlatform, PlatformConfig

        platform = CollaborativeRoyaltyPlatform(config=PlatformConfig.from_env())
        logger.info("Royalty platform initialized", extra=platform.config.to_dict())

    managers.platform = platform
    return platform


def create_app(platform=None, config: dict | None = None) -> Flask:
    """
    Build the Flask application.

    Args:
        platform: Platform instance to serve (see init_managers)
        config: Extra Flask config, applied after environment defaults
    """
    app = Flask(__name__)
    app.json.sort_keys = False
    app.config.update(
        ROYALTY_API_KEY=os.getenv("ROYALTY_API_KEY"),
        ROYALTY_REQUIRE_AUTH=os.getenv("ROYALTY_REQUIRE_AUTH", "true").lower() == "true",
        ROYALTY_ENABLE_DEPOSITS=os.getenv("ROYALTY_ENABLE_DEPOSITS", "false").lower() == "true",
    )
    if config:
        app.config.update(config)

    init_managers(platform)
    register_blueprints(app)
    register_error_handlers(app)
    setup_request_logging(app)
    return app


def run_server():
    """Run the Flask development server."""
    from dotenv import load_dotenv

    load_dotenv()

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 5000))
    app = create_app()

    print(f"\n{'='*60}")
    print("Collab Royalty API Server")
    print(f"{'='*60}")
    print(f"Listening on: http://{host}:{port}")
    print(f"Platform fee: {managers.platform.get_platform_fee()} bps")
    print(f"Authentication: {'Required' if app.config['ROYALTY_REQUIRE_AUTH'] else 'Disabled'}")
    print(f"{'='*60}\n")

    app.run(host=host, port=port, debug=os.getenv("FLASK_DEBUG", "").lower() == "true")
