from __future__ import annotations

import pytest

from service_monitor.markdown import MARKDOWN_RESERVED, escape_markdown
from service_monitor.report import format_report, handle_validation
from tests.fakes import FakeTelegram


def test_format_report() -> None:
    assert format_report([], "OK") == "OK"
    assert format_report(["a", "b"], "OK") == "a\nb\n"


def test_escape_markdown_prefixes_each_reserved_char_once() -> None:
    for c in MARKDOWN_RESERVED:
        assert escape_markdown(f"a{c}b") == f"a\\{c}b"
    assert escape_markdown("v1.2 [prod] failed!") == "v1\\.2 \\[prod\\] failed\\!"


def test_escape_markdown_leaves_other_chars_alone() -> None:
    text = "hello world 123 ✅ ❌ \n@:/,;?"
    assert escape_markdown(text) == text
    assert escape_markdown("") == ""


@pytest.mark.asyncio
async def test_handle_validation_with_success_message() -> None:
    tel = FakeTelegram()
    assert await handle_validation(tel, [], "All good", [7]) is True
    assert await handle_validation(tel, ["x failed", "y failed"], "All good", [7]) is True
    assert tel.sent == [("All good", [7]), ("x failed\ny failed\n", [7])]


@pytest.mark.asyncio
async def test_handle_validation_silent_on_success_without_message() -> None:
    tel = FakeTelegram()
    assert await handle_validation(tel, []) is False
    assert tel.sent == []

    assert await handle_validation(tel, ["❌ Error with cert, url: a.example."]) is True
    assert tel.sent == [("❌ Error with cert, url: a\\.example\\.\n", None)]
