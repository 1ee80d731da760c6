"""Normalization of submitted download modes and video URLs."""

from typing import Optional
from urllib.parse import parse_qs, urlsplit

from elec_downloader.models.job import JobMode

AUDIO_MODE_ALIASES = frozenset({"audio", "son", "music"})

SHORT_LINK_HOSTS = frozenset({"youtu.be", "www.youtu.be"})
WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


def normalize_mode(mode: Optional[str]) -> JobMode:
    """Map a free-form mode string to a JobMode; anything not an audio alias is video."""
    if mode and mode.strip().lower() in AUDIO_MODE_ALIASES:
        return JobMode.AUDIO
    return JobMode.VIDEO


def normalize_video_url(raw: str) -> str:
    """
    Rewrite YouTube share, watch and shorts links to the canonical watch form.

    Handles ``youtu.be/ID``, ``youtube.com/watch?v=ID`` (any youtube.com
    subdomain) and ``youtube.com/shorts/ID[/...]``, with or without a scheme.
    Anything else is returned trimmed but otherwise unchanged.

    Args:
        raw: URL as submitted by the user

    Returns:
        ``https://www.youtube.com/watch?v=ID`` or the trimmed input
    """
    trimmed = raw.strip()
    if not trimmed:
        return raw

    candidate = trimmed if "://" in trimmed else f"https://{trimmed}"
    try:
        parts = urlsplit(candidate)
        host = parts.netloc.lower()
    except ValueError:
        return trimmed
    path = parts.path.strip("/")

    def make_watch(video_id: str) -> str:
        video_id = video_id.strip()
        if not video_id:
            return trimmed
        return WATCH_URL.format(video_id=video_id)

    if host in SHORT_LINK_HOSTS:
        return make_watch(path.split("/")[0])

    if "youtube.com" in host:
        video_ids = parse_qs(parts.query).get("v")
        if video_ids and video_ids[0]:
            return make_watch(video_ids[0])
        if path.startswith("shorts/"):
            return make_watch(path[len("shorts/"):].split("/")[0])

    return trimmed
