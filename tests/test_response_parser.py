import pytest

from models import EmptyResponse, MalformedResponse, ParsedReview, ReviewFinding
from response_parser import normalize_response, strip_fences

OBJECT_REPLY = '{"reviews":[{"lineNumber":42,"comment":"possible null dereference"}]}'
ARRAY_REPLY = '[{"lineNumber":42,"comment":"possible null dereference"}]'
EXPECTED = [ReviewFinding(line_number=42, comment="possible null dereference")]


@pytest.mark.parametrize("content", [None, "", "   ", "\n\t\n"])
def test_missing_content_is_empty_response(content) -> None:
    assert isinstance(normalize_response(content), EmptyResponse)


def test_fences_only_is_empty_response() -> None:
    assert isinstance(normalize_response("```json\n```"), EmptyResponse)


@pytest.mark.parametrize(
    "content",
    [
        f"```json\n{OBJECT_REPLY}\n```",
        f"```\n{OBJECT_REPLY}\n```",
        f"```JSON\n{OBJECT_REPLY}\n```\n",
        f"  {OBJECT_REPLY}  ",
    ],
)
def test_fenced_and_unfenced_json_normalize_identically(content: str) -> None:
    assert normalize_response(content) == normalize_response(OBJECT_REPLY)


def test_object_and_bare_array_shapes_match() -> None:
    from_object = normalize_response(OBJECT_REPLY)
    from_array = normalize_response(ARRAY_REPLY)

    assert isinstance(from_object, ParsedReview)
    assert from_object.findings == EXPECTED
    assert from_array == from_object


def test_empty_reviews_is_a_valid_result() -> None:
    outcome = normalize_response('```json\n{"reviews":[]}\n```')

    assert outcome == ParsedReview(findings=[], dropped=0)


@pytest.mark.parametrize(
    "content",
    [
        '{"reviews": [{"lineNumber": 42, "comment": "oops"',
        "not json at all",
        "{'reviews': []}",
        "I reviewed lines [42] and everything looks fine.",
        'Nothing to report, see {"status": "ok"} for details.',
        "The list [] is empty, no issues found.",
    ],
)
def test_invalid_json_is_malformed_response(content: str) -> None:
    outcome = normalize_response(content)

    assert isinstance(outcome, MalformedResponse)
    assert outcome.raw == content
    assert outcome.error


@pytest.mark.parametrize(
    "content",
    ['{"comments": [{"lineNumber": 1, "comment": "x"}]}', '{"reviews": "none"}', "42", '"ok"', "null"],
)
def test_unrecognised_shapes_normalize_to_no_findings(content: str) -> None:
    assert normalize_response(content) == ParsedReview(findings=[], dropped=0)


def test_invalid_elements_are_dropped_and_good_ones_kept() -> None:
    content = """
    {"reviews": [
        {"lineNumber": 10, "comment": "keep me"},
        {"lineNumber": "12", "comment": "string line numbers are coerced"},
        {"lineNumber": 14},
        {"comment": "no line"},
        {"lineNumber": "abc", "comment": "bad line"},
        {"lineNumber": 0, "comment": "zero is not a line"},
        {"lineNumber": true, "comment": "boolean"},
        {"lineNumber": 16, "comment": "   "},
        "just a string",
        {"lineNumber": 18.0, "comment": "  trimmed  "}
    ]}
    """
    outcome = normalize_response(content)

    assert isinstance(outcome, ParsedReview)
    assert [(f.line_number, f.comment) for f in outcome.findings] == [
        (10, "keep me"),
        (12, "string line numbers are coerced"),
        (18, "trimmed"),
    ]
    assert outcome.dropped == 7


def test_json_embedded_in_prose_is_recovered() -> None:
    content = f"Here is my review:\n{OBJECT_REPLY}\nHope this helps!"

    assert normalize_response(content).findings == EXPECTED


def test_array_embedded_in_prose_is_recovered() -> None:
    content = f"Findings follow.\n{ARRAY_REPLY}"

    assert normalize_response(content) == ParsedReview(findings=EXPECTED, dropped=0)


def test_strip_fences_removes_every_marker() -> None:
    assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_fences("no fences") == "no fences"
