"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MEDIA_DIR = "~/SnapPack/media"

# Smallest file the library sweep keeps, per media kind value
MIN_STORED_BYTES = {
    "Photo": 1000,
    "Video": 4096,
}


class DownloadConfig(BaseModel):
    """A validated configuration model for the application."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    # Storage
    media_dir: str = DEFAULT_MEDIA_DIR

    # Network
    request_timeout: float = 30.0
    min_payload_bytes: int = 1000

    # Validation
    ffmpeg_binary: str = "ffmpeg"

    # Behavior
    auto_clean: bool = False
    save_history: bool = True

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)
    dry_run: bool = Field(default=False, repr=False)

    @field_validator("media_dir")
    @classmethod
    def validate_media_dir(cls, v: str) -> str:
        if not v:
            raise ValueError("Media directory cannot be empty.")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Ensures a reasonable per-request timeout."""
        if v < 1 or v > 600:
            raise ValueError("Request timeout must be between 1 and 600 seconds.")
        return v

    @field_validator("min_payload_bytes")
    @classmethod
    def validate_min_payload(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Minimum payload size cannot be negative.")
        return v

    @field_validator("ffmpeg_binary")
    @classmethod
    def validate_ffmpeg(cls, v: str) -> str:
        if not v:
            raise ValueError("ffmpeg binary cannot be empty.")
        return v

    @property
    def media_path(self) -> Path:
        return Path(self.media_dir).expanduser()

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "dry_run"}
        return {key for key in cls.model_fields if key not in internal_fields}
