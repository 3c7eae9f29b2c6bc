import pytest

from ci_logkit.errors import ValidationError
from ci_logkit.pagination import paginate_text, tail_text


def test_full_text_when_under_limit():
    r = paginate_text("Short text", 0, 1000)
    assert r.content == "Short text"
    assert r.has_more is False
    assert r.total_size == 10
    assert r.next_offset is None


def test_splits_on_line_boundaries():
    text = "Line 1\nLine 2\nLine 3\nLine 4"
    r = paginate_text(text, 0, 15)
    assert r.content == "Line 1\nLine 2\n"
    assert r.has_more is True
    assert r.next_offset == 14

    assert paginate_text("Line 1\nLine 2\nLine 3", 0, 10).content == "Line 1\n"


def test_offset_in_middle_of_text():
    r = paginate_text("Line 1\nLine 2\nLine 3\nLine 4", 7, 15)
    assert r.content == "Line 2\nLine 3\n"
    assert r.offset == 7


def test_offset_past_end_is_empty():
    r = paginate_text("abc", 3, 10)
    assert r.content == ""
    assert r.has_more is False
    assert r.to_dict()["pagination"] == {"offset": 3, "limit": 10, "totalSize": 3, "hasMore": False}


def test_single_line_longer_than_limit_is_not_trimmed():
    r = paginate_text("x" * 100 + "\nrest", 0, 10)
    assert r.content == "x" * 10
    assert r.has_more is True
    assert r.next_offset == 10


def test_final_remainder_may_end_mid_line():
    r = paginate_text("a\nbc", 2, 10)
    assert r.content == "bc"
    assert r.has_more is False


@pytest.mark.parametrize("text", [
    "",
    "a",
    "a\n",
    "line1\nline2\n\nline4",
    "x" * 37 + "\n" + "y" * 5 + "\n\n\nz",
    "no newline anywhere in this one",
    "\n\n\n",
])
@pytest.mark.parametrize("limit", [1, 3, 7, 50])
def test_following_next_offset_reconstructs_text(text, limit):
    parts = []
    offset = 0
    while True:
        chunk = paginate_text(text, offset, limit)
        parts.append(chunk.content)
        if not chunk.has_more:
            break
        assert chunk.content.endswith("\n") or "\n" not in chunk.content
        assert chunk.next_offset == offset + len(chunk.content)
        offset = chunk.next_offset
    assert "".join(parts) == text


@pytest.mark.parametrize("offset,limit", [(-1, 10), (0, 0), (0, -5)])
def test_invalid_pagination_arguments(offset, limit):
    with pytest.raises(ValidationError):
        paginate_text("abc", offset, limit)


def test_tail_returns_text_unchanged_when_short():
    r = tail_text("a\nb\nc", 5)
    assert r.content == "a\nb\nc"
    assert r.truncated is False
    assert r.total_lines == 3
    assert r.returned_lines == 3


def test_tail_exact_line_count_is_not_truncated():
    r = tail_text("a\nb\nc", 3)
    assert r.truncated is False
    assert r.content == "a\nb\nc"


def test_tail_returns_last_lines():
    r = tail_text("a\nb\nc\nd", 2)
    assert r.content == "c\nd"
    assert r.truncated is True
    assert r.total_lines == 4
    assert r.returned_lines == 2


def test_tail_preserves_empty_lines():
    r = tail_text("a\n\n\nb", 3)
    assert r.content == "\n\nb"
    assert r.total_lines == 4


def test_tail_counts_trailing_empty_line():
    r = tail_text("a\nb\n", 2)
    assert r.content == "b\n"
    assert r.total_lines == 3
    assert r.truncated is True


def test_tail_empty_text():
    assert tail_text("", 10).to_dict() == {"content": "", "truncated": False, "totalLines": 0, "returnedLines": 0}


def test_tail_rejects_non_positive_lines():
    with pytest.raises(ValidationError):
        tail_text("a", 0)
