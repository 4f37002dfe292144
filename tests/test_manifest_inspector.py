"""
Tests for HLS manifest inspection
"""
from services.manifest_inspector import (
    DEFAULT_BITRATE_KBPS,
    DEFAULT_RESOLUTION,
    ManifestInfo,
    estimate_bitrate,
    inspect_manifest,
    resolution_from_hint,
)

MASTER_PLAYLIST = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360
low/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=5000000,RESOLUTION=1920x1080
high/index.m3u8
"""


class TestInspectManifest:
    """Tests for inspect_manifest"""

    def test_last_variant_wins(self):
        info = inspect_manifest(MASTER_PLAYLIST)

        assert info == ManifestInfo(bitrate_kbps=5000, resolution="1920x1080")
        assert not info.is_assumed

    def test_bandwidth_without_resolution(self):
        info = inspect_manifest("#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=2400000\nvariant.m3u8\n")

        assert info.bitrate_kbps == 2400
        assert info.resolution == DEFAULT_RESOLUTION

    def test_bandwidth_is_integer_divided(self):
        info = inspect_manifest("#EXT-X-STREAM-INF:BANDWIDTH=1999,RESOLUTION=426x240\n")

        assert info.bitrate_kbps == 1
        assert info.resolution == "426x240"

    def test_tiny_declared_bandwidth_is_kept(self):
        info = inspect_manifest("#EXT-X-STREAM-INF:BANDWIDTH=800,RESOLUTION=426x240\nlow.m3u8\n")

        assert info == ManifestInfo(bitrate_kbps=0, resolution="426x240")

    def test_tiny_declared_bandwidth_not_replaced_by_estimate(self):
        body = "#EXT-X-STREAM-INF:BANDWIDTH=999\nv.m3u8\n#EXTINF:10,1080p\nseg.ts\n"

        assert inspect_manifest(body) == ManifestInfo(bitrate_kbps=0, resolution="1920x1080")

    def test_entry_shorthand_resolution_estimates_bitrate(self):
        body = "#EXTM3U\n#EXTINF:10.0,Live 480p\nsegment1.ts\n"
        info = inspect_manifest(body)

        assert info == ManifestInfo(bitrate_kbps=1500, resolution="854x480")

    def test_entry_explicit_resolution(self):
        body = "#EXTINF:-1,Channel 1920x1080\nsegment.ts\n"

        assert inspect_manifest(body) == ManifestInfo(bitrate_kbps=5000, resolution="1920x1080")

    def test_variant_bandwidth_not_overridden_by_estimate(self):
        body = "#EXT-X-STREAM-INF:BANDWIDTH=3000000\nv.m3u8\n#EXTINF:10,720p\nseg.ts\n"
        info = inspect_manifest(body)

        assert info.bitrate_kbps == 3000
        assert info.resolution == "1280x720"

    def test_defaults_when_no_hints(self):
        info = inspect_manifest("#EXTM3U\n#EXT-X-TARGETDURATION:10\n#EXTINF:10.0,\nsegment.ts\n")

        assert info == ManifestInfo(bitrate_kbps=DEFAULT_BITRATE_KBPS, resolution=DEFAULT_RESOLUTION)
        assert info.is_assumed

    def test_empty_body(self):
        assert inspect_manifest("").is_assumed
        assert inspect_manifest(None).is_assumed


class TestHints:
    """Tests for resolution hint helpers"""

    def test_resolution_from_hint(self):
        assert resolution_from_hint("1080p") == "1920x1080"
        assert resolution_from_hint("720P") == "1280x720"
        assert resolution_from_hint("1024x576") == "1024x576"
        assert resolution_from_hint("576p") is None

    def test_estimate_bitrate_is_monotonic(self):
        ordered = ["426x240", "640x360", "854x480", "1280x720", "1920x1080"]
        bitrates = [estimate_bitrate(resolution) for resolution in ordered]

        assert bitrates == sorted(bitrates)
        assert estimate_bitrate("3840x2160") == DEFAULT_BITRATE_KBPS
