"""
Offline reconciliation.

When a session had to save through the fallback export, the result is a
re-serialised page. Given that file and the untouched original, this
module recovers the text edits by comparing the visible text of both
and replays them on the original source with the same patcher the live
session uses.
"""

from typing import List, Tuple

import structlog

from editmode.diff import POSITIONAL, generate_edits_from_tokens
from editmode.ingest import collect_body_text_tokens
from editmode.models import Edit, ReconcileReport
from editmode.patch.engine import patch_source

logger = structlog.get_logger(__name__)


def build_edits(original_html: str, edited_html: str, alignment: str = POSITIONAL) -> Tuple[List[Edit], int, int]:
    """
    Returns (edits, original_token_count, edited_token_count).

    Raises:
        ValueError: If either file has no visible text at all.
    """
    original_tokens = collect_body_text_tokens(original_html)
    edited_tokens = collect_body_text_tokens(edited_html)

    if not original_tokens or not edited_tokens:
        raise ValueError("Could not detect text blocks in one of the files.")

    if len(original_tokens) != len(edited_tokens):
        logger.debug(
            "Token counts differ between files.",
            original=len(original_tokens),
            edited=len(edited_tokens),
        )

    edits = generate_edits_from_tokens(original_tokens, edited_tokens, alignment)
    return edits, len(original_tokens), len(edited_tokens)


def reconcile(original_html: str, edited_html: str, alignment: str = POSITIONAL) -> ReconcileReport:
    """
    Patches original_html with the text changes visible in edited_html.
    With no detected edits the report carries original_html unchanged.
    """
    edits, original_count, edited_count = build_edits(original_html, edited_html, alignment)
    result = patch_source(original_html, edits)

    report = ReconcileReport(
        original_token_count=original_count,
        edited_token_count=edited_count,
        edits=edits,
        result=result,
    )
    logger.info(
        f"Reconciled {result.applied_count} of {len(edits)} edits.",
        drift=report.structural_drift,
    )
    return report
