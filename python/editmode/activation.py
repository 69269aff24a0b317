from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

if TYPE_CHECKING:
    from editmode.live.session import EditSession

EDIT_FRAGMENT = "edit"
EDIT_QUERY_KEY = "edit"
EDIT_QUERY_VALUE = "true"
TOGGLE_KEY = "e"


def edit_requested(url: str) -> bool:
    """True for a #edit fragment (any case) or an ?edit=true query flag."""
    parts = urlsplit(url)
    if parts.fragment.lower() == EDIT_FRAGMENT:
        return True
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key == EDIT_QUERY_KEY:
            # Only the first occurrence counts
            return value == EDIT_QUERY_VALUE
    return False


def clear_edit_flags(url: str) -> str:
    """
    Returns url without the #edit fragment and, when the first edit
    parameter is "true", without any edit parameter at all.
    """
    parts = urlsplit(url)
    fragment = "" if parts.fragment.lower() == EDIT_FRAGMENT else parts.fragment

    query = parse_qsl(parts.query, keep_blank_values=True)
    query_string = parts.query
    first = next((v for k, v in query if k == EDIT_QUERY_KEY), None)
    if first == EDIT_QUERY_VALUE:
        query_string = urlencode([(k, v) for k, v in query if k != EDIT_QUERY_KEY])

    return urlunsplit((parts.scheme, parts.netloc, parts.path, query_string, fragment))


def is_toggle_shortcut(key: str, ctrl: bool = False, meta: bool = False) -> bool:
    """Ctrl+E (Windows/Linux) or Cmd+E (Mac)."""
    return (ctrl or meta) and key == TOGGLE_KEY


def activate_from_url(session: "EditSession", url: str) -> bool:
    """Starts session if url carries an edit flag. Returns whether it did."""
    if edit_requested(url) and not session.is_active():
        session.start()
        return True
    return False
