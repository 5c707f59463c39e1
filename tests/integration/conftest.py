"""Integration test fixtures for PushTalk.

Provides the sink application, an async HTTP client bound to it through
``ASGITransport``, and a patched Slack uploader so no request leaves the
process.
"""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.app import create_app


@pytest.fixture
def app():
    """Create a fresh FastAPI application instance."""
    return create_app()


@pytest.fixture
async def async_client(app):
    """AsyncClient talking to the in-process sink."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def slack_uploader():
    """Replace the route's SlackUploader with an AsyncMock instance.

    Yields the mock instance; ``upload`` returns a Slack-like reply.
    """
    with patch("src.api.routes.upload.SlackUploader") as mock_cls:
        uploader = AsyncMock()
        uploader.upload.return_value = {"ok": True, "files": [{"id": "F123"}]}
        mock_cls.return_value = uploader
        yield uploader
