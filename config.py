"""Shared configuration and utilities for the AI review action."""

import functools
import json
import logging
import os
import re
import time
from collections.abc import Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEFAULT_MODEL: str = "gemini-2.5-flash"
DEFAULT_MAX_TOKENS: int = 500
DEFAULT_MAX_PATCH_CHARS: int = 2000
DEFAULT_TIMEOUT: float = 60.0

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"

# Repo format: "owner/repo"
_REPO_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$")

_TRUTHY = {"1", "true", "yes", "on"}


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
def configure_logging(level: str = "INFO") -> None:
    """Initialise root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def validate_repo(repo: str) -> str:
    """Validate repository string matches 'owner/repo' format.

    Returns *repo* unchanged on success; raises ``ValueError`` otherwise.
    """
    if not _REPO_PATTERN.match(repo):
        raise ValueError(
            f"Invalid repo format: {repo!r}. Expected 'owner/repo' "
            f"(e.g. 'octo-org/web-app')."
        )
    return repo


# ---------------------------------------------------------------------------
# Retry decorator
# ---------------------------------------------------------------------------
def with_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    retryable: tuple[type[Exception], ...] = (Exception,),
):
    """Decorator: retry a function with exponential back-off."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            last_exc: Exception | None = None
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except retryable as exc:
                    last_exc = exc
                    if attempt < max_retries - 1:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Attempt %d/%d for %s failed: %s. Retrying in %.1fs...",
                            attempt + 1,
                            max_retries,
                            func.__name__,
                            exc,
                            delay,
                        )
                        time.sleep(delay)
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
class Settings(BaseModel):
    """Run-wide configuration, read once at startup and never mutated."""

    model_config = ConfigDict(frozen=True)

    github_token: str = Field(min_length=1, repr=False)
    model_api_key: str = Field(min_length=1, repr=False)
    model_base_url: str | None = None
    model: str = DEFAULT_MODEL
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    max_patch_chars: int = Field(default=DEFAULT_MAX_PATCH_CHARS, gt=0)
    request_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    repo: str
    pr_number: int = Field(gt=0)
    commit_sha: str | None = None

    dry_run: bool = False
    concurrency: int = Field(default=1, ge=1)
    log_level: str = "INFO"


def _read_event_payload(path: str | None) -> dict:
    """Load the GitHub Actions event payload, or ``{}`` when unavailable."""
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read event payload %s: %s", path, e)
        return {}
    return payload if isinstance(payload, dict) else {}


def _require(env: Mapping[str, str], name: str, hint: str = "") -> str:
    value = (env.get(name) or "").strip()
    if not value:
        message = f"{name} not found. Set it in the environment or .env file."
        if hint:
            message += f"\n{hint}"
        raise ValueError(message)
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from environment variables.

    ``.env`` is loaded first when reading the real process environment.
    Pull-request addressing falls back to the event payload GitHub Actions
    writes to ``GITHUB_EVENT_PATH``.

    Raises:
        ValueError: If a required value is missing or invalid
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    github_token = _require(
        environ,
        "GITHUB_TOKEN",
        "Get your token at: https://github.com/settings/tokens",
    )
    model_api_key = _require(environ, "OPENAI_API_KEY")
    repo = validate_repo(_require(environ, "GITHUB_REPOSITORY"))

    pull_request = _read_event_payload(environ.get("GITHUB_EVENT_PATH")).get(
        "pull_request"
    ) or {}

    pr_number = environ.get("PR_NUMBER") or pull_request.get("number")
    if not pr_number:
        raise ValueError(
            "Pull request number not found. Set PR_NUMBER or run on a "
            "pull_request event."
        )

    commit_sha = environ.get("PR_HEAD_SHA") or (pull_request.get("head") or {}).get(
        "sha"
    )

    fields = {
        "github_token": github_token,
        "model_api_key": model_api_key,
        "model_base_url": environ.get("API_BASE_URL") or None,
        "model": environ.get("AI_REVIEW_MODEL") or DEFAULT_MODEL,
        "max_tokens": environ.get("AI_REVIEW_MAX_TOKENS") or DEFAULT_MAX_TOKENS,
        "max_patch_chars": (
            environ.get("AI_REVIEW_MAX_PATCH_CHARS") or DEFAULT_MAX_PATCH_CHARS
        ),
        "request_timeout": environ.get("AI_REVIEW_TIMEOUT") or DEFAULT_TIMEOUT,
        "repo": repo,
        "pr_number": pr_number,
        "commit_sha": commit_sha or None,
        "dry_run": (environ.get("AI_REVIEW_DRY_RUN") or "").lower() in _TRUTHY,
        "concurrency": environ.get("AI_REVIEW_CONCURRENCY") or 1,
        "log_level": environ.get("LOG_LEVEL") or "INFO",
    }

    try:
        return Settings(**fields)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e
