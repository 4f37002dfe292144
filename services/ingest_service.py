"""
Ingest service - runs playlist text for one source through parse and reconcile
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from services.channel_store import ChannelStore
from services.m3u_parser import parse_m3u
from services.records import ChannelRecord
from services.source_reconciler import reconcile

logger = logging.getLogger(__name__)

PLAYLIST_EXTENSIONS = (".m3u", ".m3u8")


def is_playlist_path(path: Optional[str]) -> bool:
    """Paths without an extension are accepted; others must be .m3u / .m3u8."""
    if not path:
        return True
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return True
    return path.lower().endswith(PLAYLIST_EXTENSIONS)


class IngestService:
    """Service for ingesting playlist files of a source into the channel store"""

    @staticmethod
    def parse_files(source: str, files: Iterable[Tuple[Optional[str], str]]) -> List[ChannelRecord]:
        """
        Parse every playlist file of a source into one batch.

        Args:
            source: Source identifier
            files: (origin_path, content) pairs

        Returns:
            Combined channels, de-duplicated by id (first occurrence wins)
        """
        channels: Dict[str, ChannelRecord] = {}
        for path, content in files:
            if not is_playlist_path(path):
                logger.debug(f"Skipping non-playlist file {path} for source {source}")
                continue
            for channel in parse_m3u(content, source, path):
                channels.setdefault(channel.id, channel)
        return list(channels.values())

    @staticmethod
    def ingest(source: str, files: Iterable[Tuple[Optional[str], str]]) -> Dict:
        """
        Parse, reconcile and persist a source's playlists.

        An ingest that yields no channels at all is not reconciled, so a
        transient empty fetch never deactivates a whole source.

        Args:
            source: Source identifier
            files: (origin_path, content) pairs

        Returns:
            Dict with ingest statistics
        """
        files = list(files)
        stats = {
            "success": True,
            "source": source,
            "files_received": len(files),
            "channels_processed": 0,
            "channels_added": 0,
            "channels_updated": 0,
            "channels_removed": 0,
        }

        channels = IngestService.parse_files(source, files)
        if not channels:
            logger.info(f"No channels found in {len(files)} file(s) for source {source}; nothing reconciled")
            stats["message"] = "No playlist channels found"
            return stats

        existing = ChannelStore.get_channels_by_source(source)
        result = reconcile(source, channels, existing)

        ChannelStore.upsert_channels(result.to_upsert)
        ChannelStore.save_source_metadata(source, len(channels))
        if result.source_update is not None:
            ChannelStore.append_source_update(result.source_update)

        stats.update(
            {
                "channels_processed": len(channels),
                "channels_added": result.added,
                "channels_updated": result.updated,
                "channels_removed": result.removed,
                "message": result.source_update.message if result.source_update else "",
            }
        )

        logger.info(
            f"Ingest completed for source {source}: {stats['channels_added']} added, "
            f"{stats['channels_updated']} updated, {stats['channels_removed']} removed"
        )
        return stats
