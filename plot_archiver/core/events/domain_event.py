"""
Base class for all archiver events.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """
    Something that happened in the archiver, published on the event bus.

    Attributes:
        event_id: Unique identifier for the event instance.
        timestamp: UTC creation time.
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
