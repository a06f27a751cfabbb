"""Entry point: review the current pull request and post inline comments."""

import logging
import sys

from config import configure_logging, load_settings
from github_client import PullRequestClient, PullRequestFetchError
from model_client import ModelClient
from reviewer import review_pull_request

logger = logging.getLogger(__name__)


def main() -> int:
    """Main entry point."""
    try:
        settings = load_settings()
    except ValueError as e:
        configure_logging()
        logger.error("Configuration error: %s", e)
        return 1

    configure_logging(settings.log_level)
    if settings.dry_run:
        logger.info("[DRY RUN - comments are logged, not posted]")

    source = PullRequestClient.from_settings(settings)
    model = ModelClient.from_settings(settings)

    try:
        summary = review_pull_request(settings, source, model)
    except PullRequestFetchError as e:
        logger.error("Failed to fetch pull request: %s", e)
        return 1

    logger.info(
        "Review complete: %d file(s) reviewed, %d skipped, %d comment(s) posted",
        summary.files_eligible - summary.files_skipped,
        summary.files_skipped,
        summary.comments_posted,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
