import re
from typing import List, Optional, Pattern

import structlog

from editmode.models import Edit, PatchResult, UnmatchedEdit
from editmode.utils.html import body_content_start, preview

logger = structlog.get_logger(__name__)


def _make_elastic_regex(old_text: str) -> Optional[Pattern[str]]:
    """
    Builds a pattern where every word of old_text must appear literally,
    but the gap between two words may be any run of whitespace/newlines.
    Returns None when old_text has no words.
    """
    words = old_text.split()
    if not words:
        return None
    return re.compile(r"\s+".join(re.escape(word) for word in words))


def _inside_tag(html: str, pos: int) -> bool:
    """True if pos falls between a '<' and its closing '>' (tag name or attribute)."""
    return html.rfind("<", 0, pos) > html.rfind(">", 0, pos)


def _is_text_match(html: str, match) -> bool:
    return not _inside_tag(html, match.start()) and "<" not in match.group()


class SourcePatcher:
    """
    Applies text edits to the raw source of a document, in order.

    The buffer is only ever touched inside a matched span, so everything
    outside the replaced text stays byte-identical: attribute order,
    indentation and self-closing styles survive untouched.

    A cursor advances past each replacement. Each search starts at the
    cursor and falls back to the start of the body, which picks the
    "next" occurrence of duplicated text first. This is a best-effort
    disambiguator, not provenance tracking.
    """

    def __init__(self, source: str):
        self.source = source
        self.html = source
        self.body_start = body_content_start(source)
        self.cursor = self.body_start
        self.applied_count = 0
        self.unmatched: List[UnmatchedEdit] = []
        self.skipped: List[Edit] = []

    def apply_edits(self, edits: List[Edit]) -> PatchResult:
        for edit in edits:
            self._apply_single_edit(edit)

        if self.unmatched:
            logger.warning(f"{len(self.unmatched)} of {len(edits)} edits could not be mapped to the source.")

        return PatchResult(
            html=self.html,
            applied_count=self.applied_count,
            unmatched_edits=list(self.unmatched),
            skipped_edits=list(self.skipped),
        )

    def _search_text(self, pattern: Pattern[str], pos: int):
        # Matches inside markup (tag names, attribute values) are never text
        for match in pattern.finditer(self.html, pos):
            if _is_text_match(self.html, match):
                return match
        return None

    def _apply_single_edit(self, edit: Edit) -> bool:
        if not edit.old_text or not edit.new_text or edit.old_text == edit.new_text:
            logger.debug("Skipping edit: empty side or no change.", old=preview(edit.old_text, 30))
            self.skipped.append(edit)
            return False

        pattern = _make_elastic_regex(edit.old_text)
        if pattern is None:
            self.skipped.append(edit)
            return False

        match = self._search_text(pattern, self.cursor)
        if not match and self.cursor > self.body_start:
            # Source order can differ from document order; retry from the top of the body.
            match = self._search_text(pattern, self.body_start)

        if not match:
            candidates = sum(1 for m in pattern.finditer(self.html) if _is_text_match(self.html, m))
            logger.warning(
                f"Skipping edit: '{preview(edit.old_text, 30)}' not found in source body.",
                candidates=candidates,
            )
            self.unmatched.append(
                UnmatchedEdit(
                    edit=edit,
                    old_preview=preview(edit.old_text),
                    new_preview=preview(edit.new_text),
                    candidate_count=candidates,
                )
            )
            return False

        start, end = match.span()
        logger.debug(f"Replacing source [{start}:{end}]", cursor=self.cursor)
        self.html = self.html[:start] + edit.new_text + self.html[end:]
        self.cursor = start + len(edit.new_text)
        self.applied_count += 1
        return True


def patch_source(source: str, edits: List[Edit]) -> PatchResult:
    """Runs one sequential patch pass over a fresh copy of source."""
    return SourcePatcher(source).apply_edits(edits)
