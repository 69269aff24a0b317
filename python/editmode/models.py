from enum import Enum
from typing import FrozenSet, List, Optional, Union

from pydantic import BaseModel, Field

EDITABLE_TAGS: FrozenSet[str] = frozenset(
    {
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "p",
        "span",
        "li",
        "a",
        "button",
        "label",
        "td",
        "th",
        "blockquote",
        "figcaption",
        "caption",
        "dt",
        "dd",
        "summary",
        "legend",
    }
)


class EditorConfig(BaseModel):
    """
    Knobs for one editing session. There is no config file; callers build
    this in code (or take the defaults).
    """

    editable_tags: FrozenSet[str] = Field(
        default=EDITABLE_TAGS,
        description="Tag allow-list. Only leaf elements with one of these tags become edit targets.",
    )
    toolbar_id: str = Field(
        default="edit-toolbar",
        description="id of the editor-owned toolbar. Nothing inside it is ever an edit target.",
    )
    marker_name: str = Field(
        default="edit-mode",
        description="Substring that identifies the editor's own <script> tag in the page source.",
    )
    strip_marker: bool = Field(
        default=True,
        description="If True, committed output has the editor's <script> tag removed. If False it is kept verbatim.",
    )


class Edit(BaseModel):
    """
    One user-made text change. Both sides are trimmed by whoever builds it.
    The patcher treats this as a whitespace-tolerant "search and replace".
    """

    old_text: str = Field(..., description="Text as it read when the session started.")
    new_text: str = Field(..., description="Text as it reads now. Inserted into the source verbatim.")


class UnmatchedEdit(BaseModel):
    """Diagnostic record for an edit the patcher could not place."""

    edit: Edit
    old_preview: str
    new_preview: str
    candidate_count: int = Field(0, description="Occurrences of the search pattern anywhere in the buffer.")


class PatchResult(BaseModel):
    html: str
    applied_count: int = 0
    unmatched_edits: List[UnmatchedEdit] = Field(default_factory=list)
    skipped_edits: List[Edit] = Field(default_factory=list)

    @property
    def has_unmatched(self) -> bool:
        return len(self.unmatched_edits) > 0


class FallbackReason(str, Enum):
    NO_SOURCE = "no_source"
    PARTIAL_PATCH = "partial_patch"


class Commit(BaseModel):
    """The patched source may be written out as-is."""

    html: str
    result: PatchResult


class FallbackRequired(BaseModel):
    """The patched source must not be used; export the live document instead."""

    reason: FallbackReason
    result: Optional[PatchResult] = None


SaveDecision = Union[Commit, FallbackRequired]


class ReconcileReport(BaseModel):
    """Outcome of one offline reconciliation pass."""

    original_token_count: int
    edited_token_count: int
    edits: List[Edit] = Field(default_factory=list)
    result: PatchResult

    @property
    def html(self) -> str:
        return self.result.html

    @property
    def structural_drift(self) -> bool:
        return self.original_token_count != self.edited_token_count

    @property
    def fully_applied(self) -> bool:
        return self.result.applied_count >= len(self.edits)

    @property
    def exit_code(self) -> int:
        if not self.fully_applied or self.structural_drift:
            return 2
        return 0
