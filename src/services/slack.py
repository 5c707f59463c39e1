"""
Slack file forwarding for the upload sink.

Implements Slack's external upload flow with ``httpx.AsyncClient``:

1. ``files.getUploadURLExternal`` reserves an upload URL and file ID.
2. The raw bytes are posted to that URL.
3. ``files.completeUploadExternal`` shares the file into the channel with
   a title and an initial comment.
"""

import logging
from datetime import datetime
from typing import Any

import httpx

from src.core.config import get_settings
from src.core.exceptions import SinkNotConfiguredError, SlackUploadError

logger = logging.getLogger(__name__)


class SlackUploader:
    """Uploads one audio file per call to a configured Slack channel."""

    def __init__(
        self,
        token: str | None = None,
        channel: str | None = None,
        api_base_url: str | None = None,
        initial_comment: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the uploader.

        Args:
            token: Slack bot token (falls back to settings).
            channel: Target channel ID (falls back to settings).
            api_base_url: Slack Web API root (falls back to settings).
            initial_comment: Message posted with the file.
            client: Pre-built ``httpx.AsyncClient`` (tests, custom transports).
        """
        settings = get_settings()
        self._token = token if token is not None else settings.slack_bot_token
        self._channel = channel if channel is not None else settings.slack_channel
        self._api_base_url = (api_base_url or settings.slack_api_base_url).rstrip("/")
        self._initial_comment = (
            initial_comment if initial_comment is not None else settings.slack_initial_comment
        )
        self._client = client or httpx.AsyncClient(timeout=60.0)

    def _check_configured(self) -> None:
        if not self._token:
            raise SinkNotConfiguredError("SLACK_BOT_TOKEN")
        if not self._channel:
            raise SinkNotConfiguredError("SLACK_CHANNEL")

    async def _call(self, method: str, **kwargs) -> dict[str, Any]:
        """Call a Slack Web API method and return its JSON payload.

        Raises:
            SlackUploadError: On transport errors or ``"ok": false`` replies.
        """
        url = f"{self._api_base_url}/{method}"
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            resp = await self._client.post(url, headers=headers, **kwargs)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPError as exc:
            raise SlackUploadError(f"{method} request failed: {exc}") from exc
        except ValueError as exc:
            raise SlackUploadError(f"{method} returned a malformed reply") from exc

        if not isinstance(payload, dict):
            raise SlackUploadError(f"{method} returned a malformed reply")
        if not payload.get("ok"):
            raise SlackUploadError(f"{method} failed: {payload.get('error', 'unknown_error')}")
        return payload

    async def upload(self, data: bytes, filename: str, media_type: str = "") -> dict[str, Any]:
        """Upload an audio file and share it into the channel.

        Args:
            data: Decoded audio bytes.
            filename: Name shown in Slack.
            media_type: MIME type sent with the raw upload.

        Returns:
            Slack's ``files.completeUploadExternal`` reply.

        Raises:
            SinkNotConfiguredError: Token or channel missing.
            SlackUploadError: Any step of the upload flow failed.
        """
        self._check_configured()

        reserved = await self._call(
            "files.getUploadURLExternal",
            data={"filename": filename, "length": str(len(data))},
        )
        upload_url = reserved.get("upload_url")
        file_id = reserved.get("file_id")
        if not upload_url or not file_id:
            raise SlackUploadError("files.getUploadURLExternal returned no upload URL")

        try:
            resp = await self._client.post(
                upload_url,
                content=data,
                headers={"Content-Type": media_type or "application/octet-stream"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise SlackUploadError(f"File upload failed: {exc}") from exc

        title = f"Voice Message {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        result = await self._call(
            "files.completeUploadExternal",
            json={
                "files": [{"id": file_id, "title": title}],
                "channel_id": self._channel,
                "initial_comment": self._initial_comment,
            },
        )
        logger.info("Uploaded %s (%d bytes) to Slack as %s", filename, len(data), file_id)
        return result

    async def aclose(self) -> None:
        await self._client.aclose()
