"""
SponsorPool API Blueprints

Flask Blueprints exposing the campaign manager over HTTP.

Usage:
    from sponsorpool.core.api_blueprints import create_app
    app = create_app(manager)
    app.run(host="127.0.0.1", port=8650)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from flask import Flask, Response, g
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from sponsorpool.core.api_auth import APIAuthManager
from sponsorpool.core.api_blueprints.base import success_response
from sponsorpool.core.api_blueprints.campaign_bp import campaign_bp

__all__ = [
    "campaign_bp",
    "create_app",
    "register_blueprints",
]

logger = logging.getLogger(__name__)


def register_blueprints(
    app: Flask, campaign_manager: Any, api_auth: Optional[APIAuthManager] = None
) -> None:
    """
    Register the campaign blueprint with the Flask app.

    This function sets up:
    1. A before_request handler to inject context into Flask's g object
    2. The campaign blueprint plus health and metrics endpoints
    """
    api_context = {"campaign_manager": campaign_manager, "api_auth": api_auth}

    @app.before_request
    def inject_api_context() -> None:
        """Inject API context into Flask's g object for blueprint access."""
        g.api_context = api_context

    app.register_blueprint(campaign_bp)  # has url_prefix="/campaigns"

    @app.route("/health", methods=["GET"])
    def health() -> Any:
        return success_response({"status": "ok", "campaigns": len(campaign_manager.registry)})

    @app.route("/metrics", methods=["GET"])
    def metrics() -> Response:
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)


def create_app(
    campaign_manager: Any,
    config: Optional[Any] = None,
    api_auth: Optional[APIAuthManager] = None,
) -> Flask:
    """Build the Flask application serving ``campaign_manager``.

    Without ``api_auth`` the keys come from ``config.API_KEYS``; with neither,
    no key authenticates and every caller-bound route answers 401.
    """
    app = Flask(__name__)
    if config is not None:
        app.config["MAX_CONTENT_LENGTH"] = getattr(config, "API_MAX_JSON_BYTES", None)
    if api_auth is None:
        api_auth = APIAuthManager.from_config(config)
    register_blueprints(app, campaign_manager, api_auth)
    logger.info("Campaign API initialised", extra={"event": "api.initialised"})
    return app
