"""
M3U playlist parser.

Turns raw playlist text into ChannelRecord values. Malformed entries are
skipped, never raised: an #EXTINF line needs a following URL line and a
display name after its last comma to produce a channel.
"""

import hashlib
import logging
import re
from typing import Dict, List, Optional

from services.normalizer import normalize_category, normalize_country
from services.records import STATUS_UNTESTED, ChannelRecord

logger = logging.getLogger(__name__)

EXTINF_MARKER = "#EXTINF:"
CHANNEL_ID_PREFIX = "chn_"
CHANNEL_ID_HEX_LENGTH = 16

_ATTRIBUTE_PATTERN = re.compile(r'([a-zA-Z0-9-]+)="([^"]*)"')
_LINE_SPLIT = re.compile(r"\r?\n")


def create_channel_id(url: str) -> str:
    """Stable channel id: sha1 of the trimmed URL, first 16 hex chars."""
    digest = hashlib.sha1(url.strip().encode("utf-8")).hexdigest()
    return f"{CHANNEL_ID_PREFIX}{digest[:CHANNEL_ID_HEX_LENGTH]}"


def parse_attributes(line: str) -> Dict[str, str]:
    """Collect key="value" pairs from an #EXTINF line (last one wins)."""
    return {key: value for key, value in _ATTRIBUTE_PATTERN.findall(line)}


def _build_channel(
    attributes: Dict[str, str], name: str, url: str, source: str, origin_path: Optional[str]
) -> ChannelRecord:
    return ChannelRecord(
        id=create_channel_id(url),
        name=name.strip(),
        url=url.strip(),
        country=normalize_country(attributes.get("tvg-country"), origin_path),
        category=normalize_category(attributes.get("group-title"), name),
        logo=attributes.get("tvg-logo") or None,
        tvg_id=attributes.get("tvg-id") or None,
        tvg_name=attributes.get("tvg-name") or None,
        quality_score=0,
        status=STATUS_UNTESTED,
        source=source,
    )


def parse_m3u(content: Optional[str], source: str, origin_path: Optional[str] = None) -> List[ChannelRecord]:
    """
    Parse playlist text into channel records.

    Args:
        content: Raw playlist text (UTF-8, newline delimited)
        source: Identifier of the ingestion source owning these channels
        origin_path: Path the playlist was fetched from, used for country inference

    Returns:
        Channels in playlist order; empty for empty or non-playlist input
    """
    if not content:
        return []

    lines = _LINE_SPLIT.split(content)
    channels: List[ChannelRecord] = []
    skipped = 0

    for index, line in enumerate(lines):
        if not line.startswith(EXTINF_MARKER):
            continue

        url_line = lines[index + 1].strip() if index + 1 < len(lines) else ""
        if not url_line or url_line.startswith("#"):
            skipped += 1
            continue

        name = line.rsplit(",", 1)[-1] if "," in line else ""
        if not name.strip():
            skipped += 1
            continue

        channels.append(_build_channel(parse_attributes(line), name, url_line, source, origin_path))

    if skipped:
        logger.debug(f"Skipped {skipped} malformed entries while parsing {origin_path or source}")
    logger.debug(f"Parsed {len(channels)} channels from {origin_path or source}")

    return channels
