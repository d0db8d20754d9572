"""URL normalizer utilities.

Functions to clean video links (tracking params, host case, fragments) and
turn them into their embeddable form.
"""

from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

TRACKING_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "fbclid",
    # YouTube share / referral markers; never change which video plays
    "feature",
    "si",
    "pp",
    "ab_channel",
}

EMBED_BASE = "https://www.youtube.com/embed/"


def normalize_url(url: str, remove_params: Iterable[str] | None = None) -> str:
    """Canonical spelling of a link so the same video compares equal.

    Scheme and host are lower-cased, tracking params and the fragment are
    dropped, remaining query params keep their order (`v`, `t`, `list`, ...).
    Raises ValueError for URLs urlparse rejects.
    """
    remove = set(TRACKING_PARAMS if remove_params is None else remove_params)
    p = urlparse(url.strip())
    query = urlencode(
        [(k, v) for k, v in parse_qsl(p.query, keep_blank_values=True) if k not in remove]
    )
    return urlunparse(
        (p.scheme.lower(), p.netloc.lower(), p.path, p.params, query, "")
    )


def to_embed_url(url: str) -> str:
    """Rewrite watch / short-link / shorts URLs to the embed form.

    - https://www.youtube.com/watch?v=ID&t=90s -> .../embed/ID?start=90
    - https://youtu.be/ID?t=90 -> .../embed/ID?start=90
    - https://www.youtube.com/shorts/ID -> .../embed/ID
    Embed URLs and anything unrecognized are returned unchanged.
    """
    if not url:
        return ""
    if "/embed/" in url:
        return url

    p = urlparse(url)
    params = dict(parse_qsl(p.query))
    host = p.netloc.lower()
    video_id = ""
    if host.endswith("youtu.be"):
        video_id = p.path.strip("/").split("/")[0]
    elif p.path.startswith("/shorts/"):
        video_id = p.path[len("/shorts/"):].strip("/").split("/")[0]
    elif p.path == "/watch":
        video_id = params.get("v", "")

    if not video_id:
        return url

    start = re.sub(r"s$", "", params.get("t", ""))
    suffix = f"?start={start}" if start.isdigit() else ""
    return f"{EMBED_BASE}{video_id}{suffix}"
