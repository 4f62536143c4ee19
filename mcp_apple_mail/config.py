"""Configuration settings for the Apple Mail MCP server."""

import json
import os
from functools import lru_cache
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from mcp_apple_mail.models import Account, SearchScope

# Default settings
DEFAULT_PRIORITY_MAILBOXES = ['INBOX', 'Sent Messages', 'Sent', 'Drafts']
DEFAULT_OSASCRIPT_PATH = 'osascript'
DEFAULT_JXA_TIMEOUT = 30.0
DEFAULT_MAX_OUTPUT_BYTES = 20 * 1024 * 1024


class Settings(BaseSettings):
    """
    Settings model for Apple Mail MCP server configuration.

    Automatically reads from environment variables with MCP_APPLE_MAIL_ prefix.
    List values may be given as comma-separated strings.
    """

    # Account filters
    enabled_accounts: Annotated[list[str], NoDecode] = []
    disabled_accounts: Annotated[list[str], NoDecode] = []

    # Search
    default_limit: int = 20
    max_limit: int = 100
    priority_mailboxes: Annotated[list[str], NoDecode] = DEFAULT_PRIORITY_MAILBOXES
    search_account_limit: int = 3
    messages_per_search: int = 50
    inbox_scan_depth: int = 100
    content_preview_length: int = 200
    latest_content_length: int = 500

    # Performance
    max_mailboxes_check: int = 10
    max_unread_mailboxes_check: int = 30
    messages_per_mailbox_check: int = 50
    unread_sample_size: int = 100
    jxa_timeout: float = DEFAULT_JXA_TIMEOUT
    hierarchy_timeout: float = 60.0
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES

    # Host process
    osascript_path: str = DEFAULT_OSASCRIPT_PATH
    script_dir: str | None = None
    log_level: str = 'INFO'

    # Configure environment variable settings
    model_config = SettingsConfigDict(
        env_prefix='MCP_APPLE_MAIL_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    @field_validator('enabled_accounts', 'disabled_accounts', 'priority_mailboxes', mode='before')
    @classmethod
    def split_comma_separated(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(',') if part.strip()]
        return value

    def search_scope(self) -> SearchScope:
        """Scope used by the priority-mailbox search."""
        return SearchScope(
            account_limit=self.search_account_limit,
            mailbox_scan_limit=self.max_mailboxes_check,
            messages_per_mailbox=self.messages_per_search,
            priority_names=list(self.priority_mailboxes),
        )


def is_account_enabled(account_name: str, settings: Settings) -> bool:
    """
    Check whether an account is in scope under the account filters.

    An explicit enabled list wins over the disabled list; with neither set,
    every account is enabled.
    """
    if settings.enabled_accounts:
        return account_name in settings.enabled_accounts
    if settings.disabled_accounts:
        return account_name not in settings.disabled_accounts
    return True


def filter_accounts(accounts: list[Account], settings: Settings) -> list[Account]:
    return [account for account in accounts if is_account_enabled(account.name, settings)]


@lru_cache()
def get_settings(config_file: str | None = None) -> Settings:
    """
    Get settings instance, optionally loaded from a config file.

    Args:
        config_file: Path to a JSON configuration file (optional)

    Returns:
        Settings instance
    """
    if config_file and os.path.exists(config_file):
        with open(config_file, 'r') as f:
            file_config = json.load(f)
            return Settings.model_validate(file_config)

    return Settings()


# Create a default settings instance
settings = get_settings()
