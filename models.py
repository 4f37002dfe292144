"""
Database models for the IPTV quality pipeline
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

from services.records import (
    ChannelRecord,
    QualityMetrics,
    SourceUpdate,
    StreamTestResult,
)

db = SQLAlchemy()


def _as_utc(value):
    """SQLite drops tzinfo; stored timestamps are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Channel(db.Model):  # type: ignore[name-defined]
    """Channel listed by an ingestion source. Never hard-deleted."""

    __tablename__ = "channels"

    STATUS_ACTIVE = "active"
    STATUS_INACTIVE = "inactive"
    STATUS_UNTESTED = "untested"

    id = db.Column(db.String(40), primary_key=True)  # chn_ + 16 hex chars of sha1(url)
    name = db.Column(db.String(500), nullable=False)
    url = db.Column(db.Text, nullable=False)
    country = db.Column(db.String(10), nullable=False, index=True)  # ISO alpha-2 or 'unknown'
    category = db.Column(db.String(100), nullable=False, index=True)
    logo = db.Column(db.Text)
    tvg_id = db.Column(db.String(255))
    tvg_name = db.Column(db.String(255))
    quality_score = db.Column(db.Integer, default=0, nullable=False, index=True)
    status = db.Column(db.String(20), default=STATUS_UNTESTED, nullable=False, index=True)
    last_tested = db.Column(db.DateTime)
    source = db.Column(db.String(255), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("quality_score >= 0 AND quality_score <= 100", name="channels_quality_score_check"),
        db.CheckConstraint("status IN ('active', 'inactive', 'untested')", name="channels_status_check"),
    )

    def apply_record(self, record: ChannelRecord):
        """Overwrite every mutable column from a ChannelRecord."""
        self.name = record.name
        self.url = record.url
        self.country = record.country
        self.category = record.category
        self.logo = record.logo
        self.tvg_id = record.tvg_id
        self.tvg_name = record.tvg_name
        self.quality_score = record.quality_score
        self.status = record.status
        self.last_tested = record.last_tested
        self.source = record.source

    def to_record(self) -> ChannelRecord:
        return ChannelRecord(
            id=self.id,
            name=self.name,
            url=self.url,
            country=self.country,
            category=self.category,
            source=self.source,
            logo=self.logo,
            tvg_id=self.tvg_id,
            tvg_name=self.tvg_name,
            quality_score=self.quality_score or 0,
            status=self.status,
            last_tested=_as_utc(self.last_tested),
        )

    def __repr__(self):
        return f"<Channel {self.name} ({self.id}, source={self.source})>"


class ChannelTestResult(db.Model):  # type: ignore[name-defined]
    """
    One probe of a channel's stream.

    Append-only: rows are inserted and never updated. A channel's history
    is read back ordered by tested_at.
    """

    __tablename__ = "test_results"

    RESULT_SUCCESS = "success"
    RESULT_FAILURE = "failure"

    id = db.Column(db.Integer, primary_key=True)
    channel_id = db.Column(db.String(40), db.ForeignKey("channels.id", ondelete="CASCADE"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, index=True)
    response_time_ms = db.Column(db.Integer, nullable=False)
    bitrate_kbps = db.Column(db.Integer, nullable=False)
    resolution = db.Column(db.String(20), nullable=False)
    tested_at = db.Column(db.DateTime, nullable=False, index=True)
    region = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    channel = db.relationship(
        "Channel", backref=db.backref("test_results", lazy="dynamic", cascade="all, delete-orphan")
    )

    __table_args__ = (
        db.Index("idx_test_results_channel_tested", "channel_id", "tested_at"),
        db.CheckConstraint("response_time_ms >= 0", name="test_results_response_time_check"),
        db.CheckConstraint("bitrate_kbps >= 0", name="test_results_bitrate_check"),
    )

    @staticmethod
    def from_record(result: StreamTestResult) -> "ChannelTestResult":
        return ChannelTestResult(
            channel_id=result.channel_id,
            status=result.status,
            response_time_ms=result.response_time_ms,
            bitrate_kbps=result.bitrate_kbps,
            resolution=result.resolution,
            tested_at=result.tested_at,
            region=result.region,
        )

    def to_record(self) -> StreamTestResult:
        return StreamTestResult(
            channel_id=self.channel_id,
            status=self.status,
            response_time_ms=self.response_time_ms,
            bitrate_kbps=self.bitrate_kbps,
            resolution=self.resolution,
            tested_at=_as_utc(self.tested_at),
            region=self.region,
        )

    def __repr__(self):
        return f"<ChannelTestResult channel={self.channel_id} status={self.status} at={self.tested_at}>"


class ChannelQualityMetrics(db.Model):  # type: ignore[name-defined]
    """Current quality aggregate, one row per channel, overwritten on recalculation."""

    __tablename__ = "quality_metrics"

    channel_id = db.Column(db.String(40), db.ForeignKey("channels.id", ondelete="CASCADE"), primary_key=True)
    uptime_percentage = db.Column(db.Float, nullable=False)
    stability_score = db.Column(db.Integer, nullable=False)
    video_quality_score = db.Column(db.Integer, nullable=False)
    geo_availability_score = db.Column(db.Integer, nullable=False)
    overall_score = db.Column(db.Integer, nullable=False, index=True)
    calculated_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    channel = db.relationship(
        "Channel", backref=db.backref("quality_metrics", uselist=False, cascade="all, delete-orphan")
    )

    def apply_record(self, metrics: QualityMetrics):
        self.uptime_percentage = metrics.uptime_percentage
        self.stability_score = metrics.stability_score
        self.video_quality_score = metrics.video_quality_score
        self.geo_availability_score = metrics.geo_availability_score
        self.overall_score = metrics.overall_score
        self.calculated_at = metrics.calculated_at

    def to_record(self) -> QualityMetrics:
        return QualityMetrics(
            uptime_percentage=self.uptime_percentage,
            stability_score=self.stability_score,
            video_quality_score=self.video_quality_score,
            geo_availability_score=self.geo_availability_score,
            overall_score=self.overall_score,
            calculated_at=_as_utc(self.calculated_at),
        )

    def __repr__(self):
        return f"<ChannelQualityMetrics channel={self.channel_id} overall={self.overall_score}>"


class SourceUpdateLog(db.Model):  # type: ignore[name-defined]
    """Audit trail of reconciliations. Insert-only."""

    __tablename__ = "source_updates"

    id = db.Column(db.Integer, primary_key=True)
    source = db.Column(db.String(255), nullable=False, index=True)
    timestamp = db.Column(db.DateTime, nullable=False, index=True)
    message = db.Column(db.Text, nullable=False)
    channels_added = db.Column(db.Integer, nullable=False, default=0)
    channels_updated = db.Column(db.Integer, nullable=False, default=0)
    channels_removed = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "channels_added >= 0 AND channels_updated >= 0 AND channels_removed >= 0",
            name="source_updates_counts_check",
        ),
    )

    @staticmethod
    def from_record(update: SourceUpdate) -> "SourceUpdateLog":
        return SourceUpdateLog(
            source=update.source,
            timestamp=update.timestamp,
            message=update.message,
            channels_added=update.channels_added,
            channels_updated=update.channels_updated,
            channels_removed=update.channels_removed,
        )

    def to_record(self) -> SourceUpdate:
        return SourceUpdate(
            source=self.source,
            timestamp=_as_utc(self.timestamp),
            message=self.message,
            channels_added=self.channels_added,
            channels_updated=self.channels_updated,
            channels_removed=self.channels_removed,
        )

    def __repr__(self):
        return f"<SourceUpdateLog {self.source} +{self.channels_added} ~{self.channels_updated} -{self.channels_removed}>"


class SourceMetadata(db.Model):  # type: ignore[name-defined]
    """Last ingest time and channel count per source"""

    __tablename__ = "source_metadata"

    source = db.Column(db.String(255), primary_key=True)
    last_update = db.Column(db.DateTime, nullable=False)
    channel_count = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            "source": self.source,
            "lastUpdate": _as_utc(self.last_update).isoformat() if self.last_update else None,
            "channelCount": self.channel_count,
        }

    def __repr__(self):
        return f"<SourceMetadata {self.source} channels={self.channel_count}>"


class PipelineConfig(db.Model):  # type: ignore[name-defined]
    """
    Runtime configuration for probing.

    Stores settings that control:
    - Per-step probe timeout
    - Worker pool size for concurrent probes
    - Batch size and region label of a probe cycle
    """

    __tablename__ = "pipeline_config"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Default configuration values
    DEFAULTS = {
        "probe_timeout_seconds": ("10", "Seconds allowed for each network step of a probe"),
        "probe_max_workers": ("8", "Maximum number of probes running at the same time"),
        "probe_batch_limit": ("50", "Maximum channels probed in one cycle"),
        "probe_region": ("local", "Region label recorded on probe results"),
        "probe_user_agent": ("Mozilla/5.0 (compatible; IPTV-Tester/1.0)", "User-Agent sent with probe requests"),
    }

    @staticmethod
    def get(key, default=None):
        """Get a config value by key, with fallback to defaults."""
        record = PipelineConfig.query.filter_by(key=key).first()
        if record:
            return record.value
        if key in PipelineConfig.DEFAULTS:
            return PipelineConfig.DEFAULTS[key][0]
        return default

    @staticmethod
    def get_int(key, default=0):
        """Get a config value as integer."""
        value = PipelineConfig.get(key)
        try:
            return int(value) if value else default
        except (ValueError, TypeError):
            return default

    @staticmethod
    def get_float(key, default=0.0):
        """Get a config value as float."""
        value = PipelineConfig.get(key)
        try:
            return float(value) if value else default
        except (ValueError, TypeError):
            return default

    @staticmethod
    def set(key, value, description=None):
        """Set a config value."""
        record = PipelineConfig.query.filter_by(key=key).first()
        if record:
            record.value = str(value)
            record.updated_at = datetime.utcnow()
            if description:
                record.description = description
        else:
            desc = description
            if not desc and key in PipelineConfig.DEFAULTS:
                desc = PipelineConfig.DEFAULTS[key][1]
            record = PipelineConfig(key=key, value=str(value), description=desc)
            db.session.add(record)
        db.session.commit()
        return record

    @staticmethod
    def get_all():
        """Get all config values as a dict, including defaults."""
        result = {}
        for key, (value, description) in PipelineConfig.DEFAULTS.items():
            result[key] = {"value": value, "description": description}
        for record in PipelineConfig.query.all():
            result[record.key] = {"value": record.value, "description": record.description}
        return result

    def __repr__(self):
        return f"<PipelineConfig {self.key}={self.value}>"
