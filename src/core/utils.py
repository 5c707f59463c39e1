"""Shared utility functions for PushTalk."""

import base64
import binascii
import re

_DATA_URI_RE = re.compile(r"^data:(?P<media_type>[^,]*?);base64,(?P<payload>.*)$", re.DOTALL)


def build_data_uri(media_type: str, data: bytes) -> str:
    """Encode bytes as a ``data:<media_type>;base64,...`` URI."""
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


def parse_data_uri(uri: str) -> tuple[str, bytes]:
    """Split a base64 data URI into its media type and decoded bytes.

    Args:
        uri: A string of the form ``data:<media type>;base64,<payload>``.

    Returns:
        Tuple of (media type, decoded bytes). The media type may be empty.

    Raises:
        ValueError: If the string is not a base64 data URI or the payload
            is not valid base64.
    """
    match = _DATA_URI_RE.match(uri.strip())
    if match is None:
        raise ValueError("Not a base64 data URI")
    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc
    return match.group("media_type"), data
