import re
from typing import List

import structlog

from editmode.utils.html import body_inner_html, decode_entities, strip_non_rendering

logger = structlog.get_logger(__name__)

TEXT_RUN_RE = re.compile(r">([^<>]+)<")


def collect_body_text_tokens(html: str) -> List[str]:
    """
    Extracts the visible text runs of a static HTML file, in order.

    Only text sitting directly between two tag boundaries counts. Script
    and style blocks are removed first, entities are decoded, runs are
    trimmed and empty runs dropped.

    CRITICAL: Both files of a reconciliation must go through this same
    function, otherwise positional pairing is meaningless.
    """
    body = strip_non_rendering(body_inner_html(html))

    tokens = []
    for match in TEXT_RUN_RE.finditer(body):
        text = decode_entities(match.group(1)).strip()
        if text:
            tokens.append(text)

    logger.debug(f"Collected {len(tokens)} text tokens.")
    return tokens
