"""Process free-text replies: interpret, reconcile, persist."""

import html
import logging
import re
from datetime import date

from larder.agents.interpreter import Interpreter, get_interpreter
from larder.core.locks import batch_lock
from larder.core.logging import span
from larder.services import item_service
from larder.services.reconciliation_service import ReconciliationResult, apply_change_set


logger = logging.getLogger(__name__)

BATCH_LOCK_KEY = "reconciliation"

_QUOTE_HEADER = re.compile(r"^\s*On\b.*\bwrote:\s*$", re.IGNORECASE)
_ORIGINAL_MESSAGE = re.compile(r"^\s*-{2,}\s*Original Message\s*-{2,}\s*$", re.IGNORECASE)
_HTML_BREAK = re.compile(r"<\s*(br|/p|/div)\s*/?\s*>", re.IGNORECASE)
_HTML_TAG = re.compile(r"<[^>]+>")
_SIGNATURE_SEPARATOR = "--"


def _html_to_text(markup: str) -> str:
    text = _HTML_BREAK.sub("\n", markup)
    return html.unescape(_HTML_TAG.sub("", text))


def extract_reply_text(text: str | None, html_body: str | None = None) -> str:
    """Pull the newly written part out of an inbound email reply.

    Plain text is preferred; HTML is flattened only when no text part exists.
    Everything from a quote header, an "Original Message" divider or a
    signature separator onwards is dropped, as are ">" quoted lines.
    """
    body = text or (_html_to_text(html_body) if html_body else "")

    kept: list[str] = []
    for line in body.splitlines():
        if _QUOTE_HEADER.match(line) or _ORIGINAL_MESSAGE.match(line) or line.rstrip() == _SIGNATURE_SEPARATOR:
            break
        if line.lstrip().startswith(">"):
            continue
        kept.append(line)

    return "\n".join(kept).strip()


async def process_response(
    utterance: str,
    *,
    today: date | None = None,
    interpreter: Interpreter | None = None,
) -> ReconciliationResult:
    """Interpret a reply and apply the resulting change-set.

    Batches are serialized so concurrent replies each resolve names against
    the item set left by the previous one.

    Args:
        utterance: Reply text from the household
        today: Reference date, defaults to the local date
        interpreter: Override for the process-wide interpreter

    Returns:
        ReconciliationResult with applied and skipped log lines
    """
    today = today or date.today()
    interpreter = interpreter or get_interpreter()

    with span("response_service.process_response"):
        async with batch_lock.hold(BATCH_LOCK_KEY):
            items = await item_service.list_active_items()
            change_set = await interpreter.interpret(utterance, items, today)
            if change_set.is_empty:
                logger.info("Reply produced no changes")
                return ReconciliationResult(items=items)

            result = await apply_change_set(items, change_set, today, store=item_service.DatabaseItemStore())

    logger.info(
        "Processed reply",
        extra={"applied": len(result.applied), "skipped": len(result.skipped)},
    )
    return result


def summarize(result: ReconciliationResult) -> str:
    """One-line human summary of a reconciliation."""
    if not result.applied:
        return "Response processed - no updates applied"
    count = len(result.applied)
    return f"Response processed - {count} update{'s' if count != 1 else ''} applied"
