from typing import Dict, Iterable, List, Optional, Tuple

import structlog
from lxml.html import HtmlElement

from editmode.export import render_fallback
from editmode.live.classifier import in_chrome, iter_editable_targets, text_of
from editmode.models import Commit, Edit, EditorConfig, SaveDecision
from editmode.patch.engine import patch_source
from editmode.patch.policy import decide
from editmode.source import SourceBuffer

logger = structlog.get_logger(__name__)


class BaselineStore:
    """
    Original text per edit target, captured when the session starts.

    Write-once: a node that already has a baseline keeps it until the
    store is cleared, so re-snapshotting mid-session never hides an edit.
    """

    def __init__(self):
        self._texts: Dict[HtmlElement, str] = {}

    def snapshot(self, targets: Iterable[HtmlElement]) -> int:
        added = 0
        for el in targets:
            if el not in self._texts:
                self._texts[el] = text_of(el)
                added += 1
        return added

    def get(self, el: HtmlElement) -> Optional[str]:
        return self._texts.get(el)

    def clear(self):
        self._texts.clear()

    def __contains__(self, el) -> bool:
        return el in self._texts

    def __len__(self) -> int:
        return len(self._texts)


class EditSession:
    """
    One editing session over a parsed page.

    Owns the baseline map and a handle on the original source. Nothing is
    module-level, so independent sessions never see each other's state.
    """

    def __init__(
        self,
        document: HtmlElement,
        source: Optional[SourceBuffer] = None,
        config: Optional[EditorConfig] = None,
    ):
        self.document = document
        self.source = source or SourceBuffer()
        self.config = config or EditorConfig()
        self.baselines = BaselineStore()
        self._active = False

    # -- lifecycle ---------------------------------------------------------

    def start(self):
        self._active = True
        count = self.snapshot()
        logger.info(f"Edit session started with {count} editable targets.")

    def end(self):
        self._active = False
        self.baselines.clear()
        logger.info("Edit session ended.")

    def is_active(self) -> bool:
        return self._active

    def toggle(self) -> bool:
        if self._active:
            self.end()
        else:
            self.start()
        return self._active

    enable = start
    disable = end

    # -- diffing -----------------------------------------------------------

    def snapshot(self) -> int:
        self.baselines.snapshot(iter_editable_targets(self.document, self.config))
        return len(self.baselines)

    def collect_edits(self) -> List[Edit]:
        """
        Edits for every baselined node whose trimmed text changed, in
        document order. Baselined nodes stay tracked even after they lose
        their direct text, so clearing a node yields an edit with empty
        new text. Detached nodes are not walked.
        """
        edits = []
        for el in self.document.iter():
            if el not in self.baselines:
                continue
            if in_chrome(el, self.config.toolbar_id):
                continue
            old_text = self.baselines.get(el).strip()
            new_text = text_of(el).strip()
            if old_text != new_text:
                edits.append(Edit(old_text=old_text, new_text=new_text))
        return edits

    # -- saving ------------------------------------------------------------

    def save(self) -> SaveDecision:
        edits = self.collect_edits()
        source = self.source.value

        result = patch_source(source, edits) if source is not None else None
        return decide(result, edits, self.config)

    def export(self) -> Tuple[str, SaveDecision]:
        """
        Returns the HTML to write out: the committed patch when the save
        policy allows it, otherwise the fallback rendering of the live tree.
        """
        decision = self.save()
        if isinstance(decision, Commit):
            return decision.html, decision

        logger.warning(
            f"Falling back to document export ({decision.reason.value}). Some formatting may change."
        )
        return render_fallback(self.document, self.config), decision
