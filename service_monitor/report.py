from __future__ import annotations

from typing import Optional, Sequence

from service_monitor.markdown import escape_markdown
from service_monitor.telegram import NotificationService


def format_report(errors: Sequence[str], fallback: str) -> str:
    """One line per failure, each newline-terminated; ``fallback`` when empty."""
    if not errors:
        return fallback
    return "".join(f"{err}\n" for err in errors)


async def handle_validation(
    telegram: NotificationService,
    errors: Sequence[str],
    success_message: Optional[str] = None,
    chat_ids: Optional[Sequence[int]] = None,
) -> bool:
    """Send the outcome of a probe pass. Returns whether a message went out.

    With a ``success_message`` exactly one message is always sent. Without
    one (the unattended periodic path) nothing is sent for a clean report.
    """
    if success_message is None and not errors:
        return False
    text = format_report(errors, success_message or "")
    await telegram.send_message(escape_markdown(text), chat_ids)
    return True
