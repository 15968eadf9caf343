"""Application configuration."""
from dataclasses import dataclass
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from virtual_mentor.core.errors import ConfigurationError


@dataclass(frozen=True)
class LiveKitConfig:
    """Resolved telephony credentials, only built once all of them are present."""

    api_key: str
    api_secret: str
    url: str
    sip_trunk_id: str


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str

    # LiveKit (optional at import, required by the call features)
    livekit_api_key: Optional[str] = None
    livekit_api_secret: Optional[str] = None
    livekit_url: Optional[str] = None
    livekit_sip_trunk_id: Optional[str] = None

    # Rooms and call legs
    room_empty_timeout_seconds: int = 600
    room_max_participants: int = 10
    phone_identity_prefix: str = "phone-"
    agent_name: str = "Virtual Mentor Agent"
    agent_token_ttl_minutes: int = 60

    # Stuck session sweep
    session_stale_after_seconds: int = 3600
    reconcile_interval_seconds: int = 0

    # Admin routes
    admin_api_key: Optional[str] = None

    # Server
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def missing_livekit_variables(self) -> list[str]:
        """Names of the LiveKit environment variables that are not set."""
        required = {
            "LIVEKIT_API_KEY": self.livekit_api_key,
            "LIVEKIT_API_SECRET": self.livekit_api_secret,
            "LIVEKIT_URL": self.livekit_url,
            "LIVEKIT_SIP_TRUNK_ID": self.livekit_sip_trunk_id,
        }
        return [name for name, value in required.items() if not value]

    def webhook_credentials(self) -> tuple[str, str]:
        """API key/secret pair used to verify webhook signatures."""
        missing = [
            name
            for name in self.missing_livekit_variables()
            if name in ("LIVEKIT_API_KEY", "LIVEKIT_API_SECRET")
        ]
        if missing:
            raise ConfigurationError(missing)
        return self.livekit_api_key, self.livekit_api_secret

    def livekit_config(self) -> LiveKitConfig:
        """Return the full telephony configuration or raise ConfigurationError."""
        missing = self.missing_livekit_variables()
        if missing:
            raise ConfigurationError(missing)
        return LiveKitConfig(
            api_key=self.livekit_api_key,
            api_secret=self.livekit_api_secret,
            url=self.livekit_url,
            sip_trunk_id=self.livekit_sip_trunk_id,
        )


settings = Settings()
