"""Client settings using pydantic-settings.

Settings are loaded from environment variables (or a ``.env`` file) with
defaults suitable for a local Neo4j instance, or from a nested configuration
mapping with ``NeoClientSettings.from_mapping``.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECTION = "NeoClient"

# Option names that do not snake-case to a field name
_OPTION_ALIASES = {"user_name": "username"}


class NeoClientSettings(BaseSettings):
    """Connection settings for NeoClient.

    Environment variables:
        NEOCLIENT_URI: Bolt or neo4j URI (default: bolt://localhost:7687)
        NEOCLIENT_USERNAME: User name (default: none, no authentication)
        NEOCLIENT_PASSWORD: Password (default: none)
        NEOCLIENT_DATABASE: Default database for sessions (default: neo4j)
        NEOCLIENT_STRIP_HYPHENS: Generate identifiers without hyphens (default: false)
        NEOCLIENT_CONNECTION_TIMEOUT: Connection timeout in seconds (default: 30)
        NEOCLIENT_MAX_CONNECTION_LIFETIME: Connection lifetime in seconds (default: 3600)
    """

    model_config = SettingsConfigDict(
        env_prefix="NEOCLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    uri: str = Field(default="bolt://localhost:7687", description="Neo4j URI")
    username: Optional[str] = Field(default=None, description="User name")
    password: Optional[SecretStr] = Field(default=None, description="Password")
    database: str = Field(default="neo4j", description="Default database")
    strip_hyphens: bool = Field(
        default=False,
        description="Generate hyphen-stripped identifiers instead of canonical UUIDs",
    )
    connection_timeout: float = Field(default=30.0, gt=0, description="Seconds")
    max_connection_lifetime: int = Field(default=3600, gt=0, description="Seconds")

    @property
    def auth(self) -> Optional[Tuple[str, str]]:
        """Basic auth tuple, or None when user name or password is blank."""
        password = self.password.get_secret_value() if self.password else ""
        if not self.username or not self.username.strip() or not password.strip():
            return None
        return (self.username, password)

    @property
    def driver_config(self) -> Dict[str, Any]:
        return {
            "connection_timeout": self.connection_timeout,
            "max_connection_lifetime": self.max_connection_lifetime,
        }

    @classmethod
    def from_mapping(
        cls,
        config: Mapping[str, Any],
        section: Optional[str] = DEFAULT_SECTION,
    ) -> "NeoClientSettings":
        """Build settings from a configuration section.

        Keys are matched case-insensitively, so both ``{"Uri": ...,
        "StripHyphens": true}`` and ``{"uri": ..., "strip_hyphens": true}``
        are accepted.

        Args:
            config: Configuration mapping, e.g. parsed from JSON or YAML.
            section: Name of the section holding the client options. None
                     reads the options from the top level of ``config``.
        """
        options = config.get(section, {}) if section else config
        normalized = {}
        for key, value in options.items():
            name = _snake_case(key)
            normalized[_OPTION_ALIASES.get(name, name)] = value
        return cls(**normalized)


def _snake_case(name: str) -> str:
    out = []
    for index, char in enumerate(name):
        if char.isupper() and index and not name[index - 1].isupper() and name[index - 1] != "_":
            out.append("_")
        out.append(char.lower())
    return "".join(out)
