from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("editmode")
except PackageNotFoundError:
    # Running from a source checkout without an install
    __version__ = "0.0.0-dev"

from editmode.live.session import EditSession
from editmode.models import Commit, Edit, EditorConfig, FallbackReason, FallbackRequired, PatchResult
from editmode.patch.engine import SourcePatcher, patch_source
from editmode.patch.policy import decide
from editmode.reconcile import reconcile
from editmode.source import SourceBuffer

__all__ = [
    "EditSession",
    "Edit",
    "EditorConfig",
    "PatchResult",
    "Commit",
    "FallbackRequired",
    "FallbackReason",
    "SourcePatcher",
    "SourceBuffer",
    "patch_source",
    "decide",
    "reconcile",
    "__version__",
]
