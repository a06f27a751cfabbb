import re

import pytest

from config import Settings
from diff_parser import ChangedFile
from github_client import CommentPostError, CommentRequest
from model_client import ModelCallError

# New-file lines 40-47 are visible; 42-44 are added.
APP_TS_PATCH = "\n".join(
    [
        "@@ -40,6 +40,8 @@ export function load(user) {",
        "   const config = getConfig();",
        "   const name = user.profile.name;",
        "-  return name;",
        "+  const id = user.id;",
        "+  if (!id) return null;",
        "+  return name + id;",
        " }",
        " ",
        " export default load;",
    ]
)

# Two hunks: new lines 1-4 and 21-23.
TWO_HUNK_PATCH = "\n".join(
    [
        "@@ -1,3 +1,4 @@",
        ' import a from "a";',
        '+import b from "b";',
        " ",
        " const x = 1;",
        "@@ -20,2 +21,3 @@ const x = 1;",
        " function f() {",
        "+  return x;",
        " }",
    ]
)

_PATH_IN_PROMPT = re.compile(r"^File path: (.+)$", re.MULTILINE)


class FakeSource:
    """In-memory stand-in for PullRequestClient."""

    def __init__(
        self,
        files: list[ChangedFile],
        sha: str = "head123",
        reject_lines: set[int] | None = None,
        list_error: Exception | None = None,
    ) -> None:
        self.files = files
        self.sha = sha
        self.reject_lines = reject_lines or set()
        self.list_error = list_error
        self.attempts: list[CommentRequest] = []
        self.posted: list[CommentRequest] = []
        self.head_sha_calls = 0

    def list_changed_files(self) -> list[ChangedFile]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.files)

    def head_sha(self) -> str:
        self.head_sha_calls += 1
        return self.sha

    def create_review_comment(self, request: CommentRequest) -> int:
        self.attempts.append(request)
        if request.line in self.reject_lines:
            raise CommentPostError(
                "invalid_line",
                "pull_request_review_thread.line must be part of the diff",
                status=422,
            )
        self.posted.append(request)
        return len(self.posted)


class FakeModel:
    """Answers each prompt with the reply configured for its file path."""

    def __init__(self, replies: dict) -> None:
        self.replies = replies
        self.prompts: dict[str, str] = {}

    def complete(self, prompt: str) -> str | None:
        path = _PATH_IN_PROMPT.search(prompt).group(1)
        self.prompts[path] = prompt
        reply = self.replies.get(path)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def settings() -> Settings:
    return Settings(
        github_token="gh-token",
        model_api_key="model-key",
        repo="octo-org/web-app",
        pr_number=7,
        commit_sha="abc123",
    )


@pytest.fixture
def app_ts() -> ChangedFile:
    return ChangedFile(path="src/app.ts", status="modified", patch=APP_TS_PATCH)


@pytest.fixture
def model_error() -> ModelCallError:
    return ModelCallError("model call failed: connection reset")
