"""
Manifest Inspector - extracts bitrate and resolution hints from HLS manifests.

Only manifest metadata is read; no media is decoded. When a manifest carries
no usable hints the inspector falls back to DEFAULT_BITRATE_KBPS and
DEFAULT_RESOLUTION instead of reporting "unknown", so scoring stays defined
for sparse manifests. Callers that must tell "assumed" from "measured" can
compare against those constants.
"""

import re
from dataclasses import dataclass
from typing import Optional

from services.records import UNKNOWN_RESOLUTION

# Fallbacks used when the manifest gives nothing away
DEFAULT_BITRATE_KBPS = 1000
DEFAULT_RESOLUTION = "1280x720"

# "720p" style shorthand heights mapped to canonical WxH
SHORTHAND_RESOLUTIONS = {
    1080: "1920x1080",
    720: "1280x720",
    480: "854x480",
    360: "640x360",
    240: "426x240",
}

# Assumed bitrate for a known resolution, monotonic in resolution
RESOLUTION_BITRATES = {
    "1920x1080": 5000,
    "1280x720": 2500,
    "854x480": 1500,
    "640x360": 800,
    "426x240": 400,
}

VARIANT_MARKER = "#EXT-X-STREAM-INF:"
ENTRY_MARKER = "#EXTINF:"

_BANDWIDTH_PATTERN = re.compile(r"BANDWIDTH=(\d+)", re.IGNORECASE)
_RESOLUTION_PATTERN = re.compile(r"RESOLUTION=(\d+x\d+)", re.IGNORECASE)
_FREE_TEXT_RESOLUTION = re.compile(r"(\d{3,4}p|\d+x\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class ManifestInfo:
    bitrate_kbps: int
    resolution: str

    @property
    def is_assumed(self) -> bool:
        return self.bitrate_kbps == DEFAULT_BITRATE_KBPS and self.resolution == DEFAULT_RESOLUTION


def resolution_from_hint(token: str) -> Optional[str]:
    """Map a free-text token ("1280x720", "720p") to WxH, or None."""
    token = token.lower()
    if "x" in token:
        return token
    if token.endswith("p"):
        try:
            height = int(token[:-1])
        except ValueError:
            return None
        return SHORTHAND_RESOLUTIONS.get(height)
    return None


def estimate_bitrate(resolution: str) -> int:
    for known, bitrate in RESOLUTION_BITRATES.items():
        if known in resolution:
            return bitrate
    return DEFAULT_BITRATE_KBPS


def inspect_manifest(body: Optional[str]) -> ManifestInfo:
    """
    Scan a manifest body for variant bandwidth/resolution and entry hints.

    Later variants override earlier ones, so a master playlist reports its
    last listed variant.
    """
    bitrate_kbps: Optional[int] = None  # None until a bandwidth is declared or estimated
    resolution = UNKNOWN_RESOLUTION

    for raw_line in (body or "").split("\n"):
        line = raw_line.strip()

        if line.startswith(VARIANT_MARKER):
            bandwidth = _BANDWIDTH_PATTERN.search(line)
            if bandwidth:
                bitrate_kbps = int(bandwidth.group(1)) // 1000
            declared = _RESOLUTION_PATTERN.search(line)
            if declared:
                resolution = declared.group(1)

        elif line.startswith(ENTRY_MARKER):
            hint = _FREE_TEXT_RESOLUTION.search(line)
            if hint:
                resolution = resolution_from_hint(hint.group(1)) or resolution

            if bitrate_kbps is None and resolution != UNKNOWN_RESOLUTION:
                bitrate_kbps = estimate_bitrate(resolution)

    if bitrate_kbps is None:
        bitrate_kbps = DEFAULT_BITRATE_KBPS
    if resolution == UNKNOWN_RESOLUTION:
        resolution = DEFAULT_RESOLUTION

    return ManifestInfo(bitrate_kbps=bitrate_kbps, resolution=resolution)
