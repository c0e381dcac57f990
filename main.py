"""
TripCalc itinerary – main application entry point

* Flask app serving the itinerary consistency API under `/itinerary`.
* Trip state (days + saved locations) lives in the Flask session; a real
  deployment swaps that for the trip store of the main application.
"""

import os
import logging

from flask import Flask
from flask_cors import CORS
from dotenv import load_dotenv

from tripcalc.api.config import get_port, validate_itinerary_config
from tripcalc.routes import create_itinerary_blueprint

# --------------------------------------------------------------------------- #
# Environment & logging
# --------------------------------------------------------------------------- #
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Flask initialisation
# --------------------------------------------------------------------------- #
def create_app(config=None):
    """Build the Flask application.

    Args:
        config: Optional mapping applied on top of the defaults (tests)
    """
    validate_itinerary_config()

    app = Flask(__name__)

    flask_secret_key = os.getenv("FLASK_SECRET_KEY") or os.urandom(32).hex()
    if "FLASK_SECRET_KEY" not in os.environ:
        logger.warning("No FLASK_SECRET_KEY found. Generated a temporary key.")
    app.secret_key = flask_secret_key

    app.config.update(
        SESSION_COOKIE_SECURE=False,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        PERMANENT_SESSION_LIFETIME=86400,
    )
    if config:
        app.config.update(config)

    # CORS for local dev / cross‑origin front‑end requests
    CORS(app, origins="*", supports_credentials=True)

    app.register_blueprint(create_itinerary_blueprint())

    @app.route("/debug")
    def debug():
        """Simple JSON health endpoint."""
        return {
            "status": "ok",
            "endpoints": {
                "health": "/itinerary/health",
                "days": "/itinerary/api/days",
                "disconnections": "/itinerary/api/disconnections",
            },
        }

    return app


app = create_app()

# --------------------------------------------------------------------------- #
# Local development runner ( `python main.py` )
# --------------------------------------------------------------------------- #
if __name__ == "__main__":
    port = get_port()
    logger.info("Starting itinerary app on http://localhost:%d", port)
    app.run(host="0.0.0.0", port=port, debug=False)

__all__ = ["app", "create_app"]
