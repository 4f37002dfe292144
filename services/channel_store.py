"""
Channel Store - persistence boundary for the ingestion and scoring pipeline.

Implements the storage contract the pipeline hands its output to:
- channels and quality metrics are upserted by id (replays are idempotent)
- probe results and source updates are insert-only

Every write method commits its own unit of work and rolls the session back
if the database rejects it.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from models import (
    Channel,
    ChannelQualityMetrics,
    ChannelTestResult,
    SourceMetadata,
    SourceUpdateLog,
    db,
)
from services.records import (
    ChannelRecord,
    QualityMetrics,
    SourceUpdate,
    StreamTestResult,
    utc_now,
)

logger = logging.getLogger(__name__)


@contextmanager
def _unit_of_work(operation: str):
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as e:
        logger.warning(f"Rolling back {operation}: {e}")
        db.session.rollback()
        raise


class ChannelStore:
    """SQLAlchemy-backed storage for channels, probe history and audit records."""

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------

    @staticmethod
    def get_channel(channel_id: str) -> Optional[ChannelRecord]:
        channel = db.session.get(Channel, channel_id)
        return channel.to_record() if channel else None

    @staticmethod
    def get_all_channels() -> List[ChannelRecord]:
        return [channel.to_record() for channel in Channel.query.order_by(Channel.id).all()]

    @staticmethod
    def get_channels_by_source(source: str) -> List[ChannelRecord]:
        return [channel.to_record() for channel in Channel.query.filter_by(source=source).order_by(Channel.id).all()]

    @staticmethod
    def upsert_channels(records: Iterable[ChannelRecord]) -> int:
        """
        Insert or overwrite channels by id.

        Returns:
            Number of channels written
        """
        count = 0
        with _unit_of_work("channel upsert") as session:
            for record in records:
                channel = session.get(Channel, record.id)
                if channel is None:
                    channel = Channel(id=record.id)
                    session.add(channel)
                channel.apply_record(record)
                count += 1
        return count

    @staticmethod
    def patch_channel(channel_id: str, **changes) -> Optional[ChannelRecord]:
        """Apply a partial update; returns the updated record or None if unknown."""
        with _unit_of_work("channel patch") as session:
            channel = session.get(Channel, channel_id)
            if channel is None:
                return None
            record = channel.to_record().with_changes(**changes)
            channel.apply_record(record)
        return record

    # ------------------------------------------------------------------
    # Probe history and metrics
    # ------------------------------------------------------------------

    @staticmethod
    def append_test_result(result: StreamTestResult) -> None:
        with _unit_of_work("test result append") as session:
            session.add(ChannelTestResult.from_record(result))

    @staticmethod
    def get_test_results(channel_id: str, limit: Optional[int] = None) -> List[StreamTestResult]:
        """Probe history ordered by tested_at (oldest first)."""
        query = ChannelTestResult.query.filter_by(channel_id=channel_id)
        if limit:
            rows = query.order_by(ChannelTestResult.tested_at.desc(), ChannelTestResult.id.desc()).limit(limit).all()
            rows.reverse()
        else:
            rows = query.order_by(ChannelTestResult.tested_at.asc(), ChannelTestResult.id.asc()).all()
        return [row.to_record() for row in rows]

    @staticmethod
    def get_channel_ids_with_results() -> List[str]:
        rows = db.session.query(ChannelTestResult.channel_id).distinct().order_by(ChannelTestResult.channel_id).all()
        return [row[0] for row in rows]

    @staticmethod
    def save_quality_metrics(channel_id: str, metrics: QualityMetrics) -> None:
        """Overwrite the channel's current metrics row."""
        with _unit_of_work("quality metrics save") as session:
            row = session.get(ChannelQualityMetrics, channel_id)
            if row is None:
                row = ChannelQualityMetrics(channel_id=channel_id)
                session.add(row)
            row.apply_record(metrics)

    @staticmethod
    def get_quality_metrics(channel_id: str) -> Optional[QualityMetrics]:
        row = db.session.get(ChannelQualityMetrics, channel_id)
        return row.to_record() if row else None

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    @staticmethod
    def append_source_update(update: SourceUpdate) -> None:
        with _unit_of_work("source update append") as session:
            session.add(SourceUpdateLog.from_record(update))

    @staticmethod
    def get_source_updates(source: str, limit: int = 20) -> List[SourceUpdate]:
        """Most recent audit records for a source, newest first."""
        rows = (
            SourceUpdateLog.query.filter_by(source=source)
            .order_by(SourceUpdateLog.timestamp.desc(), SourceUpdateLog.id.desc())
            .limit(limit)
            .all()
        )
        return [row.to_record() for row in rows]

    @staticmethod
    def save_source_metadata(source: str, channel_count: int, updated_at: Optional[datetime] = None) -> None:
        with _unit_of_work("source metadata save") as session:
            row = session.get(SourceMetadata, source)
            if row is None:
                row = SourceMetadata(source=source)
                session.add(row)
            row.last_update = updated_at or utc_now()
            row.channel_count = channel_count

    @staticmethod
    def get_source_metadata(source: str) -> Optional[SourceMetadata]:
        return db.session.get(SourceMetadata, source)

    @staticmethod
    def ping() -> bool:
        """True when the database answers a trivial query."""
        try:
            db.session.execute(db.text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Storage health check failed: {e}")
            db.session.rollback()
            return False
