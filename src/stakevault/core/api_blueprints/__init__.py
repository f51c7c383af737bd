from __future__ import annotations

"""
StakeVault API Blueprints

Usage:
    from stakevault.core.api_blueprints import create_app
    app = create_app(contract, clock=clock)
"""

import logging
from typing import Any, Optional

from flask import Flask, g

from .admin_bp import admin_bp
from .base import success_response
from .ledger_bp import ledger_bp
from .staking_bp import staking_bp

__all__ = [
    "admin_bp",
    "ledger_bp",
    "staking_bp",
    "create_app",
    "register_blueprints",
    "run_app",
]

logger = logging.getLogger(__name__)


def register_blueprints(
    app: Flask,
    contract: Any,
    clock: Optional[Any] = None,
    collection: Optional[Any] = None,
    reward_token: Optional[Any] = None,
) -> None:
    """
    Register the staking blueprints with the Flask app.

    Args:
        app: Flask application instance
        contract: NFTStakingContract served by the API
        clock: Optional chain clock exposing ``sync_to_wall_clock``; when
            given, chain time catches up with wall time before each request
        collection: Reference asset collection hosted by the node
        reward_token: Reference reward token hosted by the node; the
            ``/ledger`` routes are registered only when both are given
    """
    api_context = {
        "contract": contract,
        "clock": clock,
        "collection": collection,
        "reward_token": reward_token,
    }

    @app.before_request
    def inject_api_context() -> None:
        """Inject API context into Flask's g object for blueprint access."""
        if clock is not None and hasattr(clock, "sync_to_wall_clock"):
            clock.sync_to_wall_clock()
        g.api_context = api_context

    app.register_blueprint(staking_bp)  # has url_prefix="/staking"
    app.register_blueprint(admin_bp)  # has url_prefix="/staking/admin"
    if collection is not None and reward_token is not None:
        app.register_blueprint(ledger_bp)  # has url_prefix="/ledger"


def create_app(
    contract: Any,
    clock: Optional[Any] = None,
    collection: Optional[Any] = None,
    reward_token: Optional[Any] = None,
) -> Flask:
    """Build a Flask app serving ``contract``."""
    app = Flask("stakevault")
    register_blueprints(app, contract, clock, collection=collection, reward_token=reward_token)

    @app.route("/health", methods=["GET"])
    def health():
        return success_response(
            {
                "status": "ok",
                "initialized": contract.is_initialized(),
                "paused": contract.pause_gate.is_paused(),
            }
        )

    return app


def run_app(app: Flask, config: Any, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve ``app`` on the configured host and port unless overridden."""
    host = host or config.API_HOST
    port = port or config.API_PORT
    logger.info(
        "Starting staking API",
        extra={"event": "api.starting", "host": host, "port": port},
    )
    app.run(host=host, port=port)
