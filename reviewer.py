"""PR Review orchestration - connects GitHub + the review model."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Protocol

from config import Settings
from diff_parser import (
    ChangedFile,
    PatchPositions,
    UnparseableDiff,
    build_positions,
    filter_files,
)
from github_client import CommentPostError, CommentRequest
from model_client import ModelCallError
from models import EmptyResponse, MalformedResponse, ReviewFinding
from prompts import build_review_prompt
from response_parser import normalize_response

logger = logging.getLogger(__name__)

AI_REVIEW_MARKER = "🤖 **AI Review**"


class PullRequestSource(Protocol):
    def list_changed_files(self) -> list[ChangedFile]: ...

    def head_sha(self) -> str: ...

    def create_review_comment(self, request: CommentRequest) -> int: ...


class CompletionModel(Protocol):
    def complete(self, prompt: str) -> str | None: ...


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------
@dataclass
class SubmissionResult:
    """Outcome of posting one file's findings."""

    posted: list[int] = field(default_factory=list)  # line numbers
    rejected: list[int] = field(default_factory=list)  # not in the diff
    failed: list[int] = field(default_factory=list)  # refused by the API


@dataclass
class FileReview:
    """Review outcome for a single file."""

    path: str
    status: str  # commented, no_suggestions, skipped
    reason: str | None = None
    submission: SubmissionResult | None = None


@dataclass
class RunSummary:
    """Everything a run attempted, for the closing log line."""

    files_total: int
    files_eligible: int
    file_reviews: list[FileReview] = field(default_factory=list)

    @property
    def comments_posted(self) -> int:
        return sum(len(r.submission.posted) for r in self.file_reviews if r.submission)

    @property
    def files_skipped(self) -> int:
        return sum(1 for r in self.file_reviews if r.status == "skipped")


# ---------------------------------------------------------------------------
# Review submitter
# ---------------------------------------------------------------------------
def format_comment_body(comment: str) -> str:
    return f"{AI_REVIEW_MARKER}: {comment}"


def submit_findings(
    source: PullRequestSource,
    file: ChangedFile,
    commit_sha: str,
    findings: list[ReviewFinding],
    positions: PatchPositions,
    dry_run: bool = False,
) -> SubmissionResult:
    """
    Post one inline comment per finding.

    Findings whose line is not part of the diff are rejected before any
    request is made. Every post is attempted independently and is never
    retried; a failure is logged and the remaining findings still go out.
    Calling this twice posts duplicate comments.
    """
    result = SubmissionResult()

    for finding in findings:
        line = finding.line_number

        if not positions.is_addressable(line):
            logger.warning(
                "⚠️ Cannot comment on %s:%d (line not in diff context)",
                file.path,
                line,
            )
            result.rejected.append(line)
            continue

        request = CommentRequest(
            path=file.path,
            line=line,
            commit_sha=commit_sha,
            body=format_comment_body(finding.comment),
        )

        if dry_run:
            logger.info("[dry run] Would comment on %s:%d: %s", file.path, line, request.body)
            result.posted.append(line)
            continue

        try:
            source.create_review_comment(request)
        except CommentPostError as e:
            logger.warning(
                "⚠️ Cannot comment on %s:%d [%s]: %s", file.path, line, e.reason, e
            )
            result.failed.append(line)
            continue

        logger.info("📝 Commented on %s:%d", file.path, line)
        result.posted.append(line)

    return result


# ---------------------------------------------------------------------------
# Per-file pipeline
# ---------------------------------------------------------------------------
def review_file(
    file: ChangedFile,
    source: PullRequestSource,
    model: CompletionModel,
    commit_sha: str,
    dry_run: bool = False,
) -> FileReview:
    """Run prompt -> model -> normalize -> submit for one eligible file."""
    logger.info("🔍 Analysing %s...", file.path)

    try:
        positions = build_positions(file.patch or "", file.path)
    except UnparseableDiff as e:
        logger.warning("⚠️ Skipping %s: unparseable diff (%s)", file.path, e)
        return FileReview(file.path, "skipped", reason="unparseable diff")

    try:
        content = model.complete(build_review_prompt(file))
    except ModelCallError as e:
        logger.error("❌ Failed to analyse %s: %s", file.path, e)
        return FileReview(file.path, "skipped", reason="model call failed")

    outcome = normalize_response(content)

    if isinstance(outcome, EmptyResponse):
        logger.warning(
            "⚠️ %s: model returned no content (possibly a safety filter)",
            file.path,
        )
        return FileReview(file.path, "skipped", reason="empty response")

    if isinstance(outcome, MalformedResponse):
        logger.error("❌ Failed to parse review for %s: %s", file.path, outcome.error)
        logger.error("Raw content that failed to parse: %s", outcome.raw)
        return FileReview(file.path, "skipped", reason="malformed response")

    if outcome.dropped:
        logger.info(
            "   Dropped %d finding(s) without a usable line number or comment",
            outcome.dropped,
        )

    if not outcome.findings:
        logger.info("✅ %s: no suggestions.", file.path)
        return FileReview(file.path, "no_suggestions")

    submission = submit_findings(
        source, file, commit_sha, outcome.findings, positions, dry_run=dry_run
    )
    return FileReview(file.path, "commented", submission=submission)


def _review_isolated(
    file: ChangedFile,
    source: PullRequestSource,
    model: CompletionModel,
    commit_sha: str,
    dry_run: bool,
) -> FileReview:
    try:
        return review_file(file, source, model, commit_sha, dry_run=dry_run)
    except Exception:
        logger.exception("❌ Unexpected error while reviewing %s", file.path)
        return FileReview(file.path, "skipped", reason="unexpected error")


# ---------------------------------------------------------------------------
# High-level PR review
# ---------------------------------------------------------------------------
def review_pull_request(
    settings: Settings,
    source: PullRequestSource,
    model: CompletionModel,
) -> RunSummary:
    """
    Review every eligible file of the configured pull request.

    Only a failure to list the changed files (or to resolve the head
    commit) propagates; everything after that is isolated per file.

    Returns:
        RunSummary with one FileReview per eligible file
    """
    logger.info("🚀 Starting review of %s PR #%d", settings.repo, settings.pr_number)

    files = source.list_changed_files()
    eligible = filter_files(files, settings.max_patch_chars)
    logger.info("Files to review: %d (filtered from %d)", len(eligible), len(files))

    summary = RunSummary(files_total=len(files), files_eligible=len(eligible))
    if not eligible:
        return summary

    commit_sha = settings.commit_sha or source.head_sha()

    def run(file: ChangedFile) -> FileReview:
        return _review_isolated(file, source, model, commit_sha, settings.dry_run)

    if settings.concurrency > 1:
        with ThreadPoolExecutor(max_workers=settings.concurrency) as pool:
            summary.file_reviews = list(pool.map(run, eligible))
    else:
        summary.file_reviews = [run(file) for file in eligible]

    return summary
