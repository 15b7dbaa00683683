"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit, urlunsplit

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    CACHE_TTL_SECONDS,
    COMPARE_WINDOW_SECONDS,
    DEDUP_WINDOW_SECONDS,
    DEFAULT_CHAIN,
    DEPLOYMENTS,
    HISTORY_LIMIT,
    MAX_SAMPLES,
    MULTICALL3_ADDRESS,
    USDC_DECIMALS,
)

load_dotenv()

KNOWN_PROTOCOLS = ("aave", "compound")


class PulseSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with LENDING_PULSE_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- chain / endpoints ---
    chain_name: str = DEFAULT_CHAIN
    rpc_url: str | None = None
    multicall_address: str = MULTICALL3_ADDRESS

    # --- protocol deployments ---
    aave_pool_address: str | None = None
    compound_comet_address: str | None = None
    asset_address: str | None = None
    asset_decimals: int = Field(default=USDC_DECIMALS, ge=0, le=36)
    enabled_protocols: list[str] = Field(default_factory=lambda: list(KNOWN_PROTOCOLS))

    # --- cache ---
    cache_ttl_seconds: float = Field(default=CACHE_TTL_SECONDS, gt=0)

    # --- RPC settings ---
    rpc_timeout: float = Field(default=10.0, gt=0)
    rpc_max_concurrent_calls: int = Field(default=5, ge=1)
    rpc_delay: float = 0.0
    rpc_jitter: float = 0.0

    # --- snapshot series ---
    max_samples: int = Field(default=MAX_SAMPLES, ge=1)
    dedup_window_seconds: float = Field(default=DEDUP_WINDOW_SECONDS, ge=0)
    compare_window_seconds: int = Field(default=COMPARE_WINDOW_SECONDS, gt=0)
    history_limit: int = Field(default=HISTORY_LIMIT, ge=1)

    # --- watch loop ---
    poll_interval: float = Field(default=30.0, gt=0)

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="LENDING_PULSE_",
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @field_validator("enabled_protocols", mode="before")
    @classmethod
    def split_protocols(cls, v: Any) -> Any:
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("enabled_protocols")
    @classmethod
    def validate_protocols(cls, v: list[str]) -> list[str]:
        normalized = [name.lower() for name in v]
        unknown = [name for name in normalized if name not in KNOWN_PROTOCOLS]
        if unknown:
            raise ValueError(
                f"Unknown protocol(s) {unknown}. Available: {', '.join(KNOWN_PROTOCOLS)}"
            )
        if not normalized:
            raise ValueError("enabled_protocols must name at least one protocol")
        return normalized

    @model_validator(mode="after")
    def set_derived_values(self) -> "PulseSettings":
        """Fill unset endpoints and addresses from the chain's known deployment."""
        deployment = DEPLOYMENTS.get(self.chain_name)
        if deployment is None:
            return self
        if self.rpc_url is None:
            self.rpc_url = deployment["rpc_url"]
        if self.aave_pool_address is None:
            self.aave_pool_address = deployment["aave_pool"]
        if self.compound_comet_address is None:
            self.compound_comet_address = deployment["compound_comet"]
        if self.asset_address is None:
            self.asset_address = deployment["usdc"]
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("LENDING_PULSE_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    local_config = Path("lending-pulse.toml")
                    user_config = (
                        Path.home() / ".config" / "lending-pulse" / "config.toml"
                    )
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [lending_pulse]
                body = data.get("lending_pulse", data)
                if not isinstance(body, dict):
                    return {}
                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a dict with RPC credentials redacted."""
        data = self.model_dump()
        if self.rpc_url:
            data["rpc_url"] = _redact_url(self.rpc_url)
        return data

    @property
    def rpc_url_required(self) -> str:
        """Get rpc_url, raising ValueError if not set."""
        if self.rpc_url is None:
            raise ValueError("rpc_url must be configured")
        return self.rpc_url

    @property
    def aave_pool_address_required(self) -> str:
        """Get aave_pool_address, raising ValueError if not set."""
        if self.aave_pool_address is None:
            raise ValueError("aave_pool_address must be configured")
        return self.aave_pool_address

    @property
    def compound_comet_address_required(self) -> str:
        """Get compound_comet_address, raising ValueError if not set."""
        if self.compound_comet_address is None:
            raise ValueError("compound_comet_address must be configured")
        return self.compound_comet_address

    @property
    def asset_address_required(self) -> str:
        """Get asset_address, raising ValueError if not set."""
        if self.asset_address is None:
            raise ValueError("asset_address must be configured")
        return self.asset_address


def _redact_url(url: str) -> str:
    """Hide userinfo and path segments that commonly carry API keys."""
    parts = urlsplit(url)
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    segments = [
        "***redacted***" if len(segment) >= 20 else segment
        for segment in parts.path.split("/")
    ]
    query = "***redacted***" if parts.query else ""
    return urlunsplit((parts.scheme, netloc, "/".join(segments), query, ""))
