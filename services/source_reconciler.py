"""
Source Reconciler - diffs a freshly parsed batch against stored channels.

The incoming batch always wins: every incoming channel is upserted with its
incoming properties. Stored channels missing from the batch are soft-deleted
(status forced to inactive) so their score and probe history survive. No I/O
happens here; the caller hands ``to_upsert`` and ``source_update`` to storage.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from services.records import STATUS_INACTIVE, ChannelRecord, SourceUpdate, utc_now

logger = logging.getLogger(__name__)

ACTION_INSERT = "insert"
ACTION_UPDATE = "update"
ACTION_UNCHANGED = "unchanged"
ACTION_DEACTIVATE = "deactivate"
ACTION_RETAIN = "retain"  # missing from the batch and already inactive

# Decisions that produce a write
WRITE_ACTIONS = (ACTION_INSERT, ACTION_UPDATE, ACTION_UNCHANGED, ACTION_DEACTIVATE)


@dataclass(frozen=True)
class ReconcileDecision:
    """What happens to one channel id in this reconciliation."""

    action: str
    channel: ChannelRecord
    previous: Optional[ChannelRecord] = None

    @property
    def writes(self) -> bool:
        return self.action in WRITE_ACTIONS


@dataclass
class ReconcileResult:
    source: str
    decisions: List[ReconcileDecision] = field(default_factory=list)
    source_update: Optional[SourceUpdate] = None

    def _count(self, action: str) -> int:
        return sum(1 for d in self.decisions if d.action == action)

    @property
    def added(self) -> int:
        return self._count(ACTION_INSERT)

    @property
    def updated(self) -> int:
        return self._count(ACTION_UPDATE)

    @property
    def removed(self) -> int:
        return self._count(ACTION_DEACTIVATE)

    @property
    def to_upsert(self) -> List[ChannelRecord]:
        return [d.channel for d in self.decisions if d.writes]

    def to_dict(self) -> Dict:
        return {
            "source": self.source,
            "channels_added": self.added,
            "channels_updated": self.updated,
            "channels_removed": self.removed,
            "channels_upserted": len(self.to_upsert),
        }


def reconcile(
    source: str,
    incoming: Iterable[ChannelRecord],
    existing: Iterable[ChannelRecord],
    now: Optional[datetime] = None,
) -> ReconcileResult:
    """
    Decide insert/update/deactivate for a source's channels.

    Args:
        source: Source identifier the batches belong to
        incoming: Freshly parsed channels
        existing: Channels currently stored for the source

    Returns:
        ReconcileResult with one decision per channel id and the audit record
    """
    incoming = list(incoming)
    existing_by_id = {channel.id: channel for channel in existing}
    incoming_ids = set()
    result = ReconcileResult(source=source)

    for channel in incoming:
        if channel.id in incoming_ids:
            continue
        incoming_ids.add(channel.id)

        stored = existing_by_id.get(channel.id)
        if stored is None:
            action = ACTION_INSERT
        elif stored.url != channel.url or stored.status != channel.status:
            action = ACTION_UPDATE
        else:
            action = ACTION_UNCHANGED
        result.decisions.append(ReconcileDecision(action=action, channel=channel, previous=stored))

    for channel_id, stored in existing_by_id.items():
        if channel_id in incoming_ids:
            continue
        if stored.status == STATUS_INACTIVE:
            result.decisions.append(ReconcileDecision(action=ACTION_RETAIN, channel=stored, previous=stored))
            continue
        result.decisions.append(
            ReconcileDecision(
                action=ACTION_DEACTIVATE,
                channel=stored.with_changes(status=STATUS_INACTIVE),
                previous=stored,
            )
        )

    result.source_update = SourceUpdate(
        source=source,
        timestamp=now or utc_now(),
        message=f"Processed {len(incoming)} channels",
        channels_added=result.added,
        channels_updated=result.updated,
        channels_removed=result.removed,
    )

    logger.info(
        f"Reconciled source {source}: {result.added} added, {result.updated} updated, "
        f"{result.removed} removed ({len(incoming)} incoming)"
    )
    return result
