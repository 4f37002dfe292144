"""
Pytest configuration and shared fixtures for test suite

Provides Flask app, database and client fixtures, plus helpers for building
channel records and fake HTTP sessions for the stream prober.
"""
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add parent directory to path so we can import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test database URI BEFORE importing app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

# Import app and models AFTER setting environment
import app as app_module  # noqa: E402
from models import db as _db  # noqa: E402
from services.m3u_parser import create_channel_id  # noqa: E402
from services.records import STATUS_UNTESTED, ChannelRecord  # noqa: E402

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def app():
    """
    Create Flask app configured for testing

    Uses in-memory SQLite database that's reset between tests.
    """
    flask_app = app_module.app
    flask_app.config["TESTING"] = True

    with flask_app.app_context():
        _db.create_all()
        yield flask_app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    """Flask test client for making HTTP requests"""
    return app.test_client()


@pytest.fixture(scope="function")
def db(app):
    """Database fixture with app context"""
    with app.app_context():
        yield _db


def make_channel(url, name="Test Channel", source="test-source", status=STATUS_UNTESTED, **overrides):
    """Build a ChannelRecord whose id is derived from its URL"""
    fields = {
        "id": create_channel_id(url),
        "name": name,
        "url": url,
        "country": "US",
        "category": "general",
        "source": source,
        "status": status,
    }
    fields.update(overrides)
    return ChannelRecord(**fields)


def make_response(status_code=200, text=""):
    """Fake streamed response; iter_content yields the body as one chunk per call"""
    response = MagicMock()
    response.status_code = status_code
    response.encoding = "utf-8"
    response.iter_content.side_effect = lambda *args, **kwargs: iter([text.encode("utf-8")] if text else [])
    return response


def make_session(head_status=200, manifest_status=200, manifest_body=""):
    """Fake requests session answering every HEAD/GET the same way"""
    session = MagicMock()
    session.head.return_value = make_response(head_status)
    session.get.return_value = make_response(manifest_status, manifest_body)
    return session
