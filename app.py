#!/usr/bin/env python3
"""
IPTV Quality Hub - ingests playlist sources, probes streams and scores channels

Application entry point with blueprint registration:
  - routes/sources.py - Playlist ingestion and source audit trail
  - routes/probes.py - Probe cycles, metrics recalculation, channel quality
  - routes/api.py - Health and pipeline configuration
"""

import logging
import os

from flask import Flask
from flask_cors import CORS

from error_handling import register_error_handlers
from models import db

# Initialize Flask app
app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL", "sqlite:///iptv_quality.db")
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")

# Probe results are persisted from the request thread while worker threads do network I/O
app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
    "pool_pre_ping": True,
}
if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
    app.config["SQLALCHEMY_ENGINE_OPTIONS"]["connect_args"] = {"timeout": 30, "check_same_thread": False}

# Initialize extensions
CORS(app)
db.init_app(app)

# Register error handlers
register_error_handlers(app)

# Setup logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

# ============================================================================
# Register Blueprints
# ============================================================================

from routes.api import api_bp
from routes.probes import probes_bp
from routes.sources import sources_bp

app.register_blueprint(api_bp)
app.register_blueprint(sources_bp)
app.register_blueprint(probes_bp)


# ============================================================================
# CLI Commands
# ============================================================================


@app.cli.command()
def init_db():
    """Initialize the database"""
    db.create_all()
    print("Database initialized!")


# ============================================================================
# Application Entry Point
# ============================================================================


if __name__ == "__main__":
    with app.app_context():
        db.create_all()

    port = int(os.getenv("PORT", 8000))
    debug = os.getenv("DEBUG", "False").lower() == "true"

    logger.info(f"Starting IPTV Quality Hub on port {port}")
    app.run(host="0.0.0.0", port=port, debug=debug)
