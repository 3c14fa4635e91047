import pytest

from lifeease.models import Attachment
from lifeease.utils.formatting import format_bytes, normalize_reply, upload_acknowledgement


@pytest.mark.parametrize(
    "size, expected",
    [
        (0, "0 B"),
        (-5, "0 B"),
        (1, "1 B"),
        (1023, "1023 B"),
        (1024, "1.0 KB"),
        (1536, "1.5 KB"),
        (3 * 1024 * 1024, "3.0 MB"),
        (5 * 1024 ** 3, "5.0 GB"),
    ],
)
def test_format_bytes(size, expected):
    assert format_bytes(size) == expected


def test_normalize_reply_takes_text_after_last_marker():
    raw = "user\nhi\nassistant\nfirst answer\nuser\nmore\nassistant\n\n  Final answer.  \n"
    assert normalize_reply(raw) == "Final answer."


def test_normalize_reply_without_marker_is_unchanged():
    assert normalize_reply("  Just text  ") == "  Just text  "
    assert normalize_reply("") == ""


def test_normalize_reply_custom_marker():
    assert normalize_reply("<|user|>hi<|bot|> hello", marker="<|bot|>") == "hello"


def test_upload_acknowledgement():
    one = Attachment.from_bytes("a.txt", b"x" * 10)
    two = Attachment.from_bytes("b.png", b"y" * 1536)
    assert upload_acknowledgement([one]) == "✓ Uploaded 1 file (10 B)"
    assert upload_acknowledgement([one, two]) == "✓ Uploaded 2 files (10 B + 1.5 KB)"
