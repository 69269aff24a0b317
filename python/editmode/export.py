"""
Fallback export and output naming.

render_fallback serialises the live tree. It is only used when the
source patch cannot be committed, and it will reflow markup: attribute
quoting, whitespace and self-closing styles come out the way lxml
writes them.
"""

import copy
import datetime
import re
from pathlib import Path
from typing import Optional, Union

import lxml.html
import structlog
from lxml.html import HtmlElement

from editmode.models import EditorConfig

logger = structlog.get_logger(__name__)


def render_fallback(document: HtmlElement, config: Optional[EditorConfig] = None) -> str:
    """
    Serialises a copy of the live tree with the editor's toolbar and
    embedding <script> removed. The live tree itself is left untouched.
    """
    config = config or EditorConfig()
    root = copy.deepcopy(document.getroottree().getroot())

    for el in root.xpath("//*[@id=$id]", id=config.toolbar_id):
        el.drop_tree()

    for script in root.xpath("//script[@src]"):
        if config.marker_name in script.get("src", ""):
            script.drop_tree()

    html = lxml.html.tostring(root, encoding="unicode", method="html")
    return "<!DOCTYPE html>\n" + html


def download_name(title: Optional[str], now: Optional[datetime.datetime] = None) -> str:
    """
    Builds "<slug>_<YYYYMMDD>_<HHMM>.html" from a page title.
    The slug is the lower-cased title with runs of anything outside
    [a-z0-9] turned into "_"; an empty slug becomes "page".
    """
    now = now or datetime.datetime.now()
    basename = re.sub(r"[^a-z0-9]+", "_", (title or "").lower()).rstrip("_")
    return f"{basename or 'page'}_{now.strftime('%Y%m%d')}_{now.strftime('%H%M')}.html"


def page_title(document: HtmlElement) -> str:
    titles = document.xpath("//title")
    if not titles:
        return ""
    return titles[0].text_content().strip()


def write_export(
    html: str,
    directory: Union[str, Path],
    title: Optional[str] = None,
    now: Optional[datetime.datetime] = None,
) -> Path:
    output_path = Path(directory) / download_name(title, now)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(html)
    logger.info(f"Wrote {output_path}")
    return output_path
