"""Configuration with JSON file, config.yml, secrets.yml and env variable support.

Load order (later overrides earlier):
1. config.json - base configuration
2. config.yml at the repo root - non-secret overlay
3. secrets.yml - account secrets, verify token, relay URL
4. Environment variables (``JOBRELAY_`` prefix)
"""

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from jobrelay.automation.credential_manager import LoginTimings
from jobrelay.automation.posting import PostingTimings
from jobrelay.automation.selectors import SelectorSet, load_selector_set
from jobrelay.models.domain import Account, normalize_account_key

ENV_PREFIX = "JOBRELAY_"

# Sections of secrets.yml that map onto dict-typed settings as a whole
_DICT_SECTIONS = {"accounts"}


def find_repo_root(*, start: Path) -> Path:
    """Best-effort repository root discovery.

    Relative paths in the config resolve against the first directory holding
    a ``pyproject.toml``, falling back to the current working directory.
    """
    start = start.resolve()
    for p in [start, *start.parents]:
        if (p / "pyproject.toml").exists():
            return p
    return Path.cwd()


def _flatten_secrets_mapping(secrets: dict) -> dict:
    """Flatten one level of nesting into RelayConfig keys.

        relay.webhook_url       -> relay_webhook_url
        webhook.verify_token    -> webhook_verify_token
        accounts.<identity>     -> kept as the ``accounts`` mapping
    """
    flat: dict[str, Any] = {}
    for section, values in secrets.items():
        if isinstance(values, dict) and section not in _DICT_SECTIONS:
            for key, value in values.items():
                flat[f"{section}_{key}"] = value
        else:
            flat[section] = values
    return flat


def _load_yaml_mapping(path: Path) -> dict:
    if not path.is_file():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return data if isinstance(data, dict) else {}


class RelayConfig(BaseSettings):
    """Service configuration.

    Prefix: JOBRELAY_ (e.g., JOBRELAY_WEBHOOK_VERIFY_TOKEN)
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    database_url: str = Field(default="sqlite+aiosqlite:///./jobrelay.db")
    auto_create_tables: bool = Field(
        default=True, description="Create missing tables at startup instead of relying on Alembic"
    )

    # HTTP server
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8080)
    public_base_url: str = Field(
        default="http://localhost:8080",
        description="Externally reachable base URL used when minting deep links",
    )

    # Messaging platform
    messenger_link: str = Field(
        default="https://m.me/jobrelay", description="Chat entry point; ?ref=<session> is appended"
    )
    webhook_verify_token: str | None = Field(
        default=None,
        description="Shared secret for webhook verification. Unset rejects every verification.",
    )

    # Downstream relay
    relay_webhook_url: str | None = Field(default=None)
    relay_timeout_seconds: float = Field(default=10.0)
    relay_drain_seconds: float = Field(default=5.0)

    # Context sessions
    context_session_ttl_hours: float = Field(default=24.0)
    context_list_limit: int = Field(default=50)

    # Automation accounts: identity -> secret
    accounts: dict[str, str] = Field(default_factory=dict)

    # Destination site
    site_base_url: str = Field(default="https://www.facebook.com/")
    artifact_domain: str = Field(default="facebook.com")
    identity_artifact: str = Field(default="c_user")
    session_artifact: str = Field(default="xs")
    selectors_path: str | None = Field(default=None)

    # Browser
    browser_headless: bool = Field(default=True)
    browser_args: list[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-dev-shm-usage",
            "--disable-blink-features=AutomationControlled",
        ]
    )
    browser_user_agent: str | None = Field(default=None)
    browser_viewport_width: int = Field(default=1366)
    browser_viewport_height: int = Field(default=768)
    browser_locale: str = Field(default="en-US")
    browser_default_timeout_ms: int = Field(default=30_000)
    account_busy_wait_seconds: float = Field(
        default=0.0, description="How long a second run for a busy account waits before 409"
    )

    # Posting timings
    navigation_timeout_ms: int = Field(default=30_000)
    navigation_attempts: int = Field(default=3)
    navigation_backoff_seconds: float = Field(default=5.0)
    settle_seconds: float = Field(default=5.0)
    selector_probe_ms: int = Field(default=3_000)
    input_timeout_ms: int = Field(default=10_000)
    type_delay_ms: int = Field(default=100)
    submit_timeout_ms: int = Field(default=10_000)
    disabled_submit_grace_seconds: float = Field(default=4.0)
    dialog_close_timeout_ms: int = Field(default=10_000)
    success_probe_ms: int = Field(default=3_000)
    between_posts_seconds: float = Field(default=10.0)
    pending_jobs_limit: int = Field(default=10)

    # Login timings
    challenge_poll_seconds: float = Field(default=10.0)
    challenge_max_polls: int = Field(default=30)

    # Logging
    log_level: str = Field(default="INFO")
    error_log_file_enabled: bool = Field(default=True)
    error_log_file_path: str = Field(default="./logs/errors.log")
    error_log_level: str = Field(default="WARNING")
    error_log_max_bytes: int = Field(default=10_485_760)
    error_log_backup_count: int = Field(default=5)

    def get_account(self, identity: str) -> Account | None:
        """Look up an account by identity or by its normalized key."""
        if identity in self.accounts:
            return Account(identity=identity, secret=self.accounts[identity])
        key = normalize_account_key(identity)
        for known, secret in self.accounts.items():
            if normalize_account_key(known) == key:
                return Account(identity=known, secret=secret)
        return None

    def posting_timings(self) -> PostingTimings:
        return PostingTimings(
            navigation_timeout_ms=self.navigation_timeout_ms,
            navigation_attempts=self.navigation_attempts,
            navigation_backoff_seconds=self.navigation_backoff_seconds,
            settle_seconds=self.settle_seconds,
            selector_probe_ms=self.selector_probe_ms,
            input_timeout_ms=self.input_timeout_ms,
            type_delay_ms=self.type_delay_ms,
            submit_timeout_ms=self.submit_timeout_ms,
            disabled_submit_grace_seconds=self.disabled_submit_grace_seconds,
            dialog_close_timeout_ms=self.dialog_close_timeout_ms,
            success_probe_ms=self.success_probe_ms,
        )

    def login_timings(self) -> LoginTimings:
        return LoginTimings(
            page_load_timeout_ms=self.navigation_timeout_ms,
            challenge_poll_seconds=self.challenge_poll_seconds,
            challenge_max_polls=self.challenge_max_polls,
        )

    def selector_set(self) -> SelectorSet:
        if not self.selectors_path:
            return SelectorSet()
        path = Path(self.selectors_path).expanduser()
        if not path.is_absolute():
            path = find_repo_root(start=Path(__file__)) / path
        return load_selector_set(path)

    @classmethod
    def from_json_file(
        cls,
        config_path: str = "config.json",
        secrets_path: str = "secrets.yml",
    ) -> "RelayConfig":
        """Load config from JSON + config.yml + secrets.yml with env var overrides.

        Args:
            config_path: Path to JSON config file.
            secrets_path: Path to secrets YAML file.

        Returns:
            Configured RelayConfig instance.
        """
        config_data: dict[str, Any] = {}

        json_path = Path(config_path)
        if json_path.exists():
            with open(json_path) as f:
                config_data = json.load(f)

        repo_root = find_repo_root(start=Path(__file__))
        config_data.update(_load_yaml_mapping(repo_root / "config.yml"))
        config_data.update(_flatten_secrets_mapping(_load_yaml_mapping(Path(secrets_path))))

        # Init kwargs beat env vars in pydantic-settings, so drop any key the
        # environment sets to let the env var win
        for key in list(config_data):
            if f"{ENV_PREFIX}{key.upper()}" in os.environ:
                del config_data[key]

        return cls(**config_data)
