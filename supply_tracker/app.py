"""
Supply Tracker - Flask Application

JSON API over the product tracking core: product list with search and
status filters, product registration, status transitions and identity
changes.
"""

import atexit
import logging
import os

from flask import Flask, jsonify

from supply_tracker.config import config, get_config
from supply_tracker.models import SigningIdentity
from supply_tracker.services.async_runner import AsyncRunner
from supply_tracker.services.ledger import create_gateway
from supply_tracker.services.tracking import TrackerSession

logger = logging.getLogger(__name__)


def create_app(config_name=None, gateway=None):
    """
    Application factory.

    Args:
        config_name: Key into supply_tracker.config.config
        gateway: Ledger gateway to use instead of the configured backend
    """

    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_class = get_config()
    else:
        config_class = config.get(config_name, config["default"])
    config_class.validate()
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    identity = None
    if app.config.get("SIGNER_ADDRESS"):
        identity = SigningIdentity(
            address=app.config["SIGNER_ADDRESS"],
            private_key=app.config.get("SIGNER_PRIVATE_KEY"),
        )

    session = TrackerSession(
        gateway or create_gateway(config_class),
        identity=identity,
        reload_concurrency=app.config["RELOAD_CONCURRENCY"],
    )
    app.extensions["tracker_session"] = session

    # one loop for every request thread; the gateway is closed on it at exit
    runner = AsyncRunner()
    app.extensions["tracker_runner"] = runner
    atexit.register(runner.stop, cleanup=session.gateway.close)
    logger.info(
        f"Tracker session on {session.gateway.name} ledger "
        f"({'read-only' if session.read_only else identity.short_address})"
    )

    # Register blueprints
    from supply_tracker.routes.products import products_bp

    app.register_blueprint(products_bp, url_prefix="/api")

    # Error handlers
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(500)
    def server_error(e):
        return jsonify({"success": False, "error": "Internal server error"}), 500

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=app.config["DEBUG"])
