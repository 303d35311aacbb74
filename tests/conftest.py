"""Shared pytest fixtures for blogtraffic tests."""

import json

import pytest
from datasette.app import Datasette

from datasette_blogtraffic.migrations import run_migrations
from datasette_blogtraffic.signing import signed_headers

TEST_SECRET = "test-signing-secret"
TEST_API_TOKEN = "test-api-token"


@pytest.fixture
def db_path(tmp_path):
    """Create a temporary database with full schema via migrations.

    This is the canonical way to get a test database - uses the same
    migration system as production.
    """
    db_file = tmp_path / "test_blogtraffic.db"
    run_migrations(db_file, verbose=False)
    return db_file


def build_datasette(db_path, **plugin_config):
    """Build a Datasette instance with the plugin configured."""
    return Datasette(
        [str(db_path)],
        config={
            "plugins": {
                "datasette-blogtraffic": {
                    "blog_db_path": str(db_path),
                    "secret_key": TEST_SECRET,
                    "api_token": TEST_API_TOKEN,
                    "suggest": {"retry_backoff_seconds": 0},
                    **plugin_config,
                }
            },
        },
    )


@pytest.fixture
def datasette(db_path):
    """Create a Datasette instance with signing configured."""
    return build_datasette(db_path)


@pytest.fixture
def send_signed(datasette):
    """Send a correctly signed request to the plugin.

    Accepts a dict (serialized to JSON) or raw bytes as the body.
    """

    async def _send(method, path, payload, timestamp_ms=None, headers=None, ds=None):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        request_headers = {
            "Content-Type": "application/json",
            **signed_headers(TEST_SECRET, TEST_API_TOKEN, body, timestamp_ms),
            **(headers or {}),
        }
        client = (ds or datasette).client
        return await client.request(method, path, content=body, headers=request_headers)

    return _send


def make_post(blog_id="post-1", **overrides):
    """A valid create payload."""
    post = {
        "blogId": blog_id,
        "title": "ATS Optimization Strategies",
        "content": "First paragraph.\n\nSecond paragraph.",
        "slug": f"{blog_id}-slug",
        "thumbnail": "https://img.example.com/thumb.jpg",
        "seoTitle": "ATS Optimization | Trenkey",
        "seoDescription": "How to get past applicant tracking systems.",
        "keywords": [{"name": "ats", "volume": 1200}, "resume tips"],
    }
    post.update(overrides)
    return post
