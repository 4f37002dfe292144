"""
Value records passed between pipeline stages.

Every stage takes and returns these records; nothing in the pipeline holds
on to ORM rows. Serialisation uses camelCase keys and ISO-8601 timestamps so
any storage or transport layer can round-trip them without loss.
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_UNTESTED = "untested"
CHANNEL_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE, STATUS_UNTESTED)

RESULT_SUCCESS = "success"
RESULT_FAILURE = "failure"

UNKNOWN_COUNTRY = "unknown"
UNKNOWN_RESOLUTION = "unknown"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """Render a timestamp as ISO-8601, treating naive values as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


@dataclass(frozen=True)
class ChannelRecord:
    """A single channel listed by an ingestion source."""

    id: str
    name: str
    url: str
    country: str
    category: str
    source: str
    logo: Optional[str] = None
    tvg_id: Optional[str] = None
    tvg_name: Optional[str] = None
    quality_score: int = 0
    status: str = STATUS_UNTESTED
    last_tested: Optional[datetime] = None

    def with_changes(self, **changes) -> "ChannelRecord":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "country": self.country,
            "category": self.category,
            "logo": self.logo,
            "tvgId": self.tvg_id,
            "tvgName": self.tvg_name,
            "qualityScore": self.quality_score,
            "status": self.status,
            "lastTested": isoformat(self.last_tested),
            "source": self.source,
        }


@dataclass(frozen=True)
class StreamTestResult:
    """Outcome of one probe. Immutable; history per channel is append-only."""

    channel_id: str
    status: str
    response_time_ms: int
    bitrate_kbps: int
    resolution: str
    tested_at: datetime
    region: str

    @property
    def is_success(self) -> bool:
        return self.status == RESULT_SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channelId": self.channel_id,
            "status": self.status,
            "responseTimeMs": self.response_time_ms,
            "bitrateKbps": self.bitrate_kbps,
            "resolution": self.resolution,
            "testedAt": isoformat(self.tested_at),
            "region": self.region,
        }


@dataclass(frozen=True)
class QualityMetrics:
    """Current derived quality aggregate for one channel."""

    uptime_percentage: float
    stability_score: int
    video_quality_score: int
    geo_availability_score: int
    overall_score: int
    calculated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uptimePercentage": self.uptime_percentage,
            "stabilityScore": self.stability_score,
            "videoQualityScore": self.video_quality_score,
            "geoAvailabilityScore": self.geo_availability_score,
            "overallScore": self.overall_score,
            "calculatedAt": isoformat(self.calculated_at),
        }


@dataclass(frozen=True)
class SourceUpdate:
    """Audit entry emitted once per reconciliation."""

    source: str
    timestamp: datetime
    message: str
    channels_added: int = 0
    channels_updated: int = 0
    channels_removed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "source": data["source"],
            "timestamp": isoformat(self.timestamp),
            "message": data["message"],
            "channelsAdded": data["channels_added"],
            "channelsUpdated": data["channels_updated"],
            "channelsRemoved": data["channels_removed"],
        }


@dataclass
class ProbeBatchStats:
    """Running totals for one probe cycle."""

    tested: int = 0
    active: int = 0
    inactive: int = 0
    errors: list = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"tested": self.tested, "active": self.active, "inactive": self.inactive, "errors": self.errors}
