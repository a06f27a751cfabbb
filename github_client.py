"""GitHub API client for pull-request file listing and review comments."""

import logging
import threading
from dataclasses import dataclass

import requests.exceptions
from github import Auth, Github
from github.Commit import Commit
from github.GithubException import (
    BadCredentialsException,
    GithubException,
    RateLimitExceededException,
)
from github.PullRequest import PullRequest
from github.Repository import Repository

from config import Settings, validate_repo, with_retry
from diff_parser import ChangedFile

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class PullRequestFetchError(RuntimeError):
    """Listing the pull request's files failed; the run cannot continue."""


class CommentPostError(RuntimeError):
    """A single review comment was rejected or could not be sent."""

    def __init__(self, reason: str, message: str, status: int | None = None) -> None:
        self.reason = reason
        self.status = status
        super().__init__(message)


def _error_message(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    message = data.get("message", str(e))
    errors = data.get("errors")
    if errors:
        message += f" ({errors})"
    return message


def classify_post_error(e: GithubException) -> str:
    """Map a GitHub error response to a CommentPostError reason."""
    if isinstance(e, RateLimitExceededException):
        return "rate_limit"
    if e.status in (401, 403):
        return "permission"
    if e.status == 422:
        # "pull_request_review_thread.line must be part of the diff"
        return "invalid_line"
    return "api_error"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class CommentRequest:
    """A comment to post on a specific line in a PR."""

    path: str  # file path (e.g., "src/app.ts")
    line: int  # line number in the file (new version)
    commit_sha: str
    body: str  # comment text
    side: str = "RIGHT"  # RIGHT = new code, LEFT = old code


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------
class PullRequestClient:
    """Read and write access to one pull request."""

    def __init__(
        self,
        token: str,
        repo: str,
        pr_number: int,
        timeout: float = 60.0,
        github: Github | None = None,
    ) -> None:
        self.repo = validate_repo(repo)
        self.pr_number = pr_number
        # retry=None: a rejected comment is not a transient fault
        self._github = github or Github(
            auth=Auth.Token(token), timeout=timeout, retry=None
        )
        self._repository: Repository | None = None
        self._pull: PullRequest | None = None
        self._commits: dict[str, Commit] = {}
        # worker threads share the cached lookups below
        self._lookup_lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PullRequestClient":
        return cls(
            token=settings.github_token,
            repo=settings.repo,
            pr_number=settings.pr_number,
            timeout=settings.request_timeout,
        )

    def _get_repository(self) -> Repository:
        with self._lookup_lock:
            if self._repository is None:
                self._repository = self._github.get_repo(self.repo)
            return self._repository

    def _get_pull(self) -> PullRequest:
        with self._lookup_lock:
            if self._pull is None:
                self._pull = self._get_repository().get_pull(self.pr_number)
            return self._pull

    # -----------------------------------------------------------------------
    # Read operations
    # -----------------------------------------------------------------------
    @with_retry(max_retries=3, base_delay=1.0, retryable=_TRANSIENT_ERRORS)
    def _fetch_files(self) -> list[ChangedFile]:
        return [
            ChangedFile(
                path=file.filename,
                status=file.status,
                patch=file.patch,
                previous_path=file.previous_filename,
            )
            for file in self._get_pull().get_files()
        ]

    def list_changed_files(self) -> list[ChangedFile]:
        """
        Fetch list of files changed in the PR.

        Returns:
            List of ChangedFile objects with paths, statuses and patches

        Raises:
            PullRequestFetchError: If authentication, lookup or transport fails
        """
        try:
            files = self._fetch_files()
        except BadCredentialsException as e:
            raise PullRequestFetchError("GitHub authentication failed") from e
        except GithubException as e:
            if e.status == 404:
                raise PullRequestFetchError(
                    f"PR #{self.pr_number} not found in {self.repo}"
                ) from e
            raise PullRequestFetchError(
                f"GitHub API error: {_error_message(e)}"
            ) from e
        except _TRANSIENT_ERRORS as e:
            raise PullRequestFetchError(f"Could not reach GitHub: {e}") from e

        logger.info("📥 Fetched %d changed file(s) from PR #%d", len(files), self.pr_number)
        return files

    def head_sha(self) -> str:
        """Return the PR's current head commit SHA."""
        try:
            return self._get_pull().head.sha
        except GithubException as e:
            raise PullRequestFetchError(
                f"Could not resolve head commit: {_error_message(e)}"
            ) from e
        except _TRANSIENT_ERRORS as e:
            raise PullRequestFetchError(f"Could not reach GitHub: {e}") from e

    # -----------------------------------------------------------------------
    # Write operations
    # -----------------------------------------------------------------------
    def _get_commit(self, sha: str) -> Commit:
        with self._lookup_lock:
            if sha not in self._commits:
                self._commits[sha] = self._get_repository().get_commit(sha)
            return self._commits[sha]

    def create_review_comment(self, request: CommentRequest) -> int:
        """
        Post one inline review comment.

        Returns:
            Comment ID

        Raises:
            CommentPostError: If GitHub rejects the comment or the request fails
        """
        try:
            comment = self._get_pull().create_review_comment(
                body=request.body,
                commit=self._get_commit(request.commit_sha),
                path=request.path,
                line=request.line,
                side=request.side,
            )
        except GithubException as e:
            raise CommentPostError(
                classify_post_error(e), _error_message(e), status=e.status
            ) from e
        except requests.exceptions.Timeout as e:
            raise CommentPostError("timeout", str(e)) from e
        except requests.exceptions.RequestException as e:
            raise CommentPostError("network", str(e)) from e
        return comment.id
