"""
Application configuration via pydantic-settings.

Loads values from .env file with sensible defaults for local development.
Use ``get_settings()`` to obtain the cached singleton instance.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """PushTalk settings loaded from environment / .env file.

    All settings can be overridden via environment variables or a `.env` file.
    Field names map directly to env var names (case-insensitive).

    Attributes:
        sample_rate_hint: Sample rate requested from the input device.
        pcm_fallback_enabled: Allow the WAV encoder when no native codec exists.
        sink_url: Endpoint the delivery client posts finished clips to.
        slack_bot_token: Bot token used by the sink to upload to Slack.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore unrecognized env vars
    )

    # --- Capture ---
    # Requested device constraints; the device may substitute other values
    sample_rate_hint: int = 44100
    channel_count_hint: int = 1
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain: bool = True
    input_device: int | str | None = None  # None = system default input
    block_duration_ms: int = 20  # Frames per device callback, in milliseconds

    # --- Analysis tap ---
    fft_size: int = 256  # Yields fft_size // 2 magnitude bins per tick
    smoothing_time_constant: float = 0.8
    min_decibels: float = -100.0
    max_decibels: float = -30.0

    # --- Encoding ---
    pcm_fallback_enabled: bool = True
    preferred_formats: list[str] | None = None  # Restrict native containers, e.g. ["FLAC"]
    audio_bits_per_second: int = 128_000
    encoder_chunk_size: int = 65_536  # Bytes per data-available chunk
    clip_basename: str = "Enregistrement"

    # --- Delivery ---
    sink_url: str = "http://localhost:8000/api/v1/upload"
    delivery_timeout: float = 30.0

    # --- Sink (Slack forwarding) ---
    slack_bot_token: str = ""  # Required by the sink service
    slack_channel: str = ""  # Channel ID, e.g. "C0123456789"
    slack_api_base_url: str = "https://slack.com/api"
    slack_initial_comment: str = "\U0001f3a4 New voice message"
    cors_allow_origins: list[str] = ["*"]
    max_upload_bytes: int = 25 * 1024 * 1024

    # --- Application ---
    app_host: str = "0.0.0.0"  # Bind address for the sink server
    app_port: int = 8000
    log_level: str = "INFO"  # Python logging level


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide ``Settings``, reading .env on first use.

    Tests build their own ``Settings(_env_file=None)`` instead of calling
    this, so a developer's .env never leaks into assertions.
    """
    return Settings()
