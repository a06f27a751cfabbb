"""Prompt template for per-file diff review."""

from diff_parser import ChangedFile

# =============================================================================
# SHARED PIECES
# =============================================================================

_FOCUS = (
    "Requirements:\n"
    "1. Find potential bugs, security vulnerabilities and performance problems.\n"
    "2. Ignore pure formatting, indentation, whitespace and comment changes.\n"
    "3. If the code looks fine, return an empty array.\n"
)

_OUTPUT_RULES = (
    "4. Respond with a single JSON object and nothing else. "
    'Its root must contain a "reviews" array in this format:\n'
    '{{"reviews":[{{"lineNumber":<target line number in the new file>,'
    '"comment":"<your suggestion>"}}]}}\n'
    'If there are no issues, respond with: {{"reviews":[]}}\n'
)


# =============================================================================
# FILE REVIEWER
# =============================================================================

REVIEW_PROMPT = (
    "You are a senior reviewer. "
    "Review the following code change (Git diff).\n"
    "File path: {path}\n"
    "\n" + _FOCUS + _OUTPUT_RULES + "\n"
    "Code diff:\n"
    "{patch}\n"
)


def build_review_prompt(file: ChangedFile) -> str:
    """Render the review instruction for one eligible file.

    Deterministic: the same path and patch always produce the same text.
    """
    return REVIEW_PROMPT.format(path=file.path, patch=file.patch or "")
