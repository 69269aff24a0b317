import html
import re
from typing import Tuple

BODY_OPEN_RE = re.compile(r"<body\b[^>]*>", re.IGNORECASE)
BODY_CLOSE_RE = re.compile(r"</body>", re.IGNORECASE)
SCRIPT_BLOCK_RE = re.compile(r"<script\b[^>]*>[\s\S]*?</script>", re.IGNORECASE)
STYLE_BLOCK_RE = re.compile(r"<style\b[^>]*>[\s\S]*?</style>", re.IGNORECASE)


def body_content_start(source: str) -> int:
    """
    Offset just past the opening <body> tag, or 0 when there is none.
    Nothing before this offset (head, meta, inline scripts) is ever patched.
    """
    match = BODY_OPEN_RE.search(source)
    if not match:
        return 0
    return match.end()


def body_bounds(source: str) -> Tuple[int, int]:
    """
    (start, end) of the body's inner HTML. Falls back to the whole string
    if either tag is missing or they are out of order.
    """
    open_match = BODY_OPEN_RE.search(source)
    close_match = BODY_CLOSE_RE.search(source)
    if not open_match or not close_match:
        return 0, len(source)
    start = open_match.end()
    end = close_match.start()
    if end <= start:
        return 0, len(source)
    return start, end


def body_inner_html(source: str) -> str:
    start, end = body_bounds(source)
    return source[start:end]


def strip_non_rendering(fragment: str) -> str:
    """Drops <script> and <style> blocks, whose contents never render as text."""
    fragment = SCRIPT_BLOCK_RE.sub("", fragment)
    return STYLE_BLOCK_RE.sub("", fragment)


def decode_entities(text: str) -> str:
    """Decodes character references. &nbsp; folds to a plain space."""
    return html.unescape(text).replace("\xa0", " ")


def preview(text: str, limit: int = 60) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
