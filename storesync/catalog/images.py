"""Download product images into the repo so the storefront does not depend
on Notion's time-limited file URLs."""

from __future__ import annotations

import logging
import os
import re
import time
from typing import Dict, Iterable, Optional

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "storesync/1.0 (+https://github.com)"
_EXT_RE = re.compile(r"\.(png|jpg|jpeg|webp)(\?|$)", re.IGNORECASE)


def safe_slug(s: str) -> str:
    s = re.sub(r"[^\w.-]+", "-", str(s or ""))
    s = re.sub(r"-+", "-", s).strip("-")
    return s[:80]


def ext_from(content_type: Optional[str], url: str) -> str:
    ct = (content_type or "").lower()
    if "png" in ct:
        return ".png"
    if "jpeg" in ct or "jpg" in ct:
        return ".jpg"
    if "webp" in ct:
        return ".webp"
    m = _EXT_RE.search(str(url))
    return f".{m.group(1).lower()}" if m else ".jpg"


def fetch_image(url: str, session=None, timeout: int = 20) -> tuple[bytes, str]:
    """GET an image. Returns (content, content_type); raises requests.HTTPError on non-2xx."""
    http = session or requests
    resp = http.get(url, headers={"User-Agent": USER_AGENT}, timeout=timeout)
    resp.raise_for_status()
    return resp.content, resp.headers.get("content-type", "")


def cache_images(
    sku: str,
    urls: Iterable[str],
    base_dir: str = os.path.join("assets", "products"),
    session=None,
    delay: float = 0.08,
) -> Dict[str, str]:
    """Save each URL as <base_dir>/<slug>/NN.ext.

    Returns {source url: POSIX path} in download order. A failing download is
    logged and left out; numbering stays contiguous.
    """
    target = os.path.join(base_dir, safe_slug(sku))
    os.makedirs(target, exist_ok=True)
    out: Dict[str, str] = {}
    for url in urls:
        if url in out:
            continue
        try:
            content, ctype = fetch_image(url, session=session)
        except requests.RequestException as e:
            logger.warning("image cache fail %s: %s", sku, e)
            continue
        name = f"{len(out) + 1:02d}{ext_from(ctype, url)}"
        with open(os.path.join(target, name), "wb") as fh:
            fh.write(content)
        out[url] = os.path.join(target, name).replace("\\", "/")
        if delay:
            time.sleep(delay)
    logger.debug("Cached %d image(s) for %s", len(out), sku)
    return out
