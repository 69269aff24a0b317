"""
Save policy: decides whether a patch pass is safe to ship.

A patched buffer is committed only when every collected edit landed.
One unmatched edit discards the whole buffer and the caller must fall
back to exporting the live document.
"""

import re
from typing import List, Optional, Pattern

import structlog

from editmode.models import Commit, Edit, EditorConfig, FallbackReason, FallbackRequired, PatchResult, SaveDecision

logger = structlog.get_logger(__name__)


def _marker_regex(marker_name: str) -> Pattern[str]:
    return re.compile(r"\s*<script[^>]*" + re.escape(marker_name) + r"[^>]*></script>\s*", re.IGNORECASE)


def remove_marker_script(html: str, marker_name: str = "edit-mode") -> str:
    """Removes the editor's own <script ...edit-mode...></script> tag(s), collapsing the gap to one newline."""
    return _marker_regex(marker_name).sub("\n", html)


def decide(
    result: Optional[PatchResult],
    edits: List[Edit],
    config: Optional[EditorConfig] = None,
) -> SaveDecision:
    """
    Args:
        result: Output of the patcher, or None if the source was never obtained.
        edits: The full edit list that was handed to the patcher.
        config: Controls marker stripping on commit.

    Returns:
        Commit with the final HTML, or FallbackRequired with the reason.
    """
    config = config or EditorConfig()

    if result is None:
        logger.warning("Original source unavailable. Fallback export required.")
        return FallbackRequired(reason=FallbackReason.NO_SOURCE)

    if result.applied_count < len(edits):
        logger.warning(
            f"Only {result.applied_count} of {len(edits)} edits applied. Fallback export required.",
            unmatched=[u.old_preview for u in result.unmatched_edits],
        )
        return FallbackRequired(reason=FallbackReason.PARTIAL_PATCH, result=result)

    html = result.html
    if config.strip_marker:
        html = remove_marker_script(html, config.marker_name)

    return Commit(html=html, result=result)
