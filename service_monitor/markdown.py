from __future__ import annotations

MARKDOWN_RESERVED = frozenset("_*[]()~`>#+-=|{}.!")


def escape_markdown(text: str) -> str:
    """Backslash-prefix every character the Bot API treats as markup."""
    return "".join("\\" + c if c in MARKDOWN_RESERVED else c for c in text or "")
