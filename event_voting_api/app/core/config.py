"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
service can start without any configuration.  In a production
deployment you should override these via environment variables.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Event Voting API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    # Optional path of a log file.  Empty means console only.
    log_file: str = os.getenv("LOG_FILE", "")
    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))

    # Path to the SQLite database.  Relative paths are resolved against
    # the project root by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "event_voting.db")

    # Defaults for the "what others suggested" endpoint.  Clients may
    # request smaller pages or a lower cap, never a higher one.
    suggestions_page_limit: int = int(os.getenv("SUGGESTIONS_PAGE_LIMIT", "50"))
    max_suggestions_per_field: int = int(os.getenv("MAX_SUGGESTIONS_PER_FIELD", "100"))

    # How many times a response submission re-reads and re-merges the
    # event after losing an optimistic version check.
    vote_update_retries: int = int(os.getenv("VOTE_UPDATE_RETRIES", "5"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.
settings = Settings()
