#!/usr/bin/env python3
"""
Collab Royalty Command Line Interface.

Provides commands for running and managing the royalty ledger:
    - serve: Start the API server
    - check: Verify installation and configuration
    - info: Display system information
    - demo: Run an end-to-end payment, distribution and governance scenario

Usage:
    collab-royalty serve [--host HOST] [--port PORT] [--debug] [--production]
    collab-royalty check
    collab-royalty info
    collab-royalty demo
    collab-royalty --version
"""

import argparse
import os
import sys

# Ensure src is in path when running from source
if os.path.exists(os.path.join(os.path.dirname(__file__), "royalty_platform.py")):
    sys.path.insert(0, os.path.dirname(__file__))

__version__ = "0.1.0"


def cmd_serve(args):
    """Start the Collab Royalty API server."""
    from dotenv import load_dotenv

    load_dotenv()

    host = args.host or os.getenv("HOST", "0.0.0.0")
    port = args.port or int(os.getenv("PORT", 5000))
    debug = args.debug or os.getenv("FLASK_DEBUG", "").lower() == "true"

    print(f"Starting Collab Royalty API server on {host}:{port}")

    if args.production:
        # Ledger state lives in process memory; REDIS_URL only shares locks
        workers = args.workers or int(os.getenv("WORKERS", 1))
        if workers != 1:
            print(
                f"Error: {workers} workers would each keep a separate in-memory ledger; "
                "run the production server with a single worker"
            )
            sys.exit(1)

        # Use gunicorn for production
        try:
            import gunicorn.app.base
        except ImportError:
            print("Error: gunicorn not installed. Install with: pip install collab-royalty[production]")
            sys.exit(1)

        class StandaloneApplication(gunicorn.app.base.BaseApplication):
            """Gunicorn WSGI wrapper around the Flask application."""

            def __init__(self, app, options=None):
                self.options = options or {}
                self.application = app
                super().__init__()

            def load_config(self):
                for key, value in self.options.items():
                    if key in self.cfg.settings and value is not None:
                        self.cfg.set(key.lower(), value)

            def load(self):
                return self.application

        options = {
            "bind": f"{host}:{port}",
            "workers": workers,
            "threads": int(os.getenv("THREADS", 4)),
            "worker_class": "gthread",
            "timeout": 120,
            "accesslog": "-",
            "errorlog": "-",
        }
        StandaloneApplication(_get_flask_app(), options).run()
    else:
        # Use Flask development server
        flask_app = _get_flask_app()
        flask_app.run(host=host, port=port, debug=debug)


def _get_flask_app():
    """Build the Flask application."""
    from api import create_app

    return create_app()


def cmd_check(args):
    """Check installation and configuration."""
    print("Collab Royalty Installation Check")
    print("=" * 40)

    checks = []

    # Core ledger
    try:
        from royalty_platform import CollaborativeRoyaltyPlatform, PlatformConfig

        config = PlatformConfig.from_env()
        CollaborativeRoyaltyPlatform(config=config)
        checks.append(("Royalty ledger", "OK"))
    except (ImportError, ValueError) as e:
        checks.append(("Royalty ledger", f"FAIL: {e}"))

    # API
    try:
        import flask  # noqa: F401

        from api import ALL_BLUEPRINTS

        checks.append((f"Flask API ({len(ALL_BLUEPRINTS)} blueprints)", "OK"))
    except ImportError as e:
        checks.append(("Flask API", f"FAIL: {e}"))

    # Monitoring
    try:
        from monitoring import metrics  # noqa: F401

        checks.append(("Monitoring", "OK"))
    except ImportError as e:
        checks.append(("Monitoring", f"FAIL: {e}"))

    # Locking
    try:
        from scaling import get_lock_manager

        lock_type = get_lock_manager().__class__.__name__
        checks.append((f"Scaling (Lock: {lock_type})", "OK"))
    except ImportError as e:
        checks.append(("Scaling", f"FAIL: {e}"))

    # Optional dependencies
    try:
        import redis  # noqa: F401

        checks.append(("Redis support", "OK"))
    except ImportError:
        checks.append(("Redis support", "SKIP (redis not installed)"))

    try:
        import gunicorn  # noqa: F401

        checks.append(("Production server", "OK"))
    except ImportError:
        checks.append(("Production server", "SKIP (gunicorn not installed)"))

    # Authentication
    if os.getenv("ROYALTY_REQUIRE_AUTH", "true").lower() == "true" and not os.getenv("ROYALTY_API_KEY"):
        checks.append(("API key", "FAIL: ROYALTY_REQUIRE_AUTH is on but ROYALTY_API_KEY is not set"))
    else:
        checks.append(("API key", "OK"))

    # Print results
    print()
    all_ok = True
    for name, status in checks:
        icon = "✓" if status == "OK" else ("○" if "SKIP" in status else "✗")
        print(f"  {icon} {name}: {status}")
        if "FAIL" in status:
            all_ok = False

    print()
    if all_ok:
        print("All checks passed!")
        return 0
    else:
        print("Some checks failed. See above for details.")
        return 1


def cmd_info(args):
    """Display system information."""
    import platform

    from royalty_platform import PlatformConfig

    print("Collab Royalty System Information")
    print("=" * 40)
    print(f"Version: {__version__}")
    print(f"Python: {platform.python_version()}")
    print(f"Platform: {platform.platform()}")

    print()
    print("Ledger:")
    try:
        for key, value in PlatformConfig.from_env().to_dict().items():
            print(f"  {key}: {value}")
    except ValueError as e:
        print(f"  Error: {e}")

    print()
    print("Configuration:")
    print(f"  REDIS_URL: {'configured' if os.getenv('REDIS_URL') else 'not set'}")
    print(f"  ROYALTY_API_KEY: {'configured' if os.getenv('ROYALTY_API_KEY') else 'not set'}")
    print(f"  ROYALTY_REQUIRE_AUTH: {os.getenv('ROYALTY_REQUIRE_AUTH', 'true (default)')}")
    print(f"  LOG_LEVEL: {os.getenv('LOG_LEVEL', 'INFO (default)')}")
    print(f"  LOG_FORMAT: {os.getenv('LOG_FORMAT', 'console (default)')}")

    return 0


def cmd_demo(args):
    """Run a complete scenario against an in-memory platform."""
    from block_clock import ManualBlockClock
    from royalty_errors import RoyaltyLedgerError
    from royalty_platform import CollaborativeRoyaltyPlatform
    from scaling import LocalLockManager
    from settlement import LocalTransferLedger

    amount = args.amount
    clock = ManualBlockClock()
    transfers = LocalTransferLedger({"fan": amount})
    platform = CollaborativeRoyaltyPlatform(
        transfers=transfers, clock=clock, lock_manager=LocalLockManager()
    )

    collaborators = ["alice", "bob", "carol"]
    try:
        work_id = platform.create_work(
            "alice", "Night Drive", collaborators, [4000, 3500, 2500], governance_enabled=True
        )
        print(f"Created work {work_id} with shares 40% / 35% / 25%")

        net = platform.receive_payment("fan", work_id, amount)
        print(f"Payment of {amount}: fee {amount - net}, pending {net}")

        platform.distribute_revenue(work_id)
        for item in platform.last_distribution(work_id).payouts:
            print(f"  {item.collaborator}: {item.amount} (balance {transfers.balance(item.collaborator)})")

        clock.advance()
        proposal_id = platform.create_proposal(
            "alice", work_id, "royalty-update", target="carol", new_percentage=4500,
            description="Raise carol to 45%",
        )
        platform.vote_on_proposal("alice", proposal_id, True)
        platform.vote_on_proposal("bob", proposal_id, True)
        platform.execute_proposal("bob", proposal_id)
        print(
            f"Proposal {proposal_id} executed: carol now "
            f"{platform.get_royalty_share(work_id, 'carol').percentage} bps, "
            f"share total {platform.registry.share_total(work_id)} bps"
        )
    except RoyaltyLedgerError as e:
        print(f"Error: {e}")
        return 1

    print()
    print("Ledger:")
    for key, value in platform.get_work_revenue(work_id).to_dict().items():
        print(f"  {key}: {value}")
    print(f"  pool balance: {transfers.balance(platform.config.pool_account)}")
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="collab-royalty",
        description="Collab Royalty - Collaborative Royalty Ledger",
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Port to bind to (default: 5000)")
    serve_parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    serve_parser.add_argument(
        "--production", action="store_true", help="Use gunicorn for production"
    )
    serve_parser.add_argument(
        "--workers", type=int, help="Number of workers (production mode; only 1 is accepted)"
    )

    # check command
    subparsers.add_parser("check", help="Check installation and configuration")

    # info command
    subparsers.add_parser("info", help="Display system information")

    # demo command
    demo_parser = subparsers.add_parser("demo", help="Run an end-to-end demo scenario")
    demo_parser.add_argument(
        "--amount", type=int, default=100_000_000, help="Payment amount in minimal units"
    )

    args = parser.parse_args()

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "check":
        sys.exit(cmd_check(args))
    elif args.command == "info":
        sys.exit(cmd_info(args))
    elif args.command == "demo":
        sys.exit(cmd_demo(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
