"""Identity records persisted in lock slots."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class MasterId(BaseModel):
    """Who owns a slot, and since when."""

    now: dt.datetime = Field(default_factory=utcnow)
    eid: str
    sid: Optional[str] = None

    @field_validator("now")
    @classmethod
    def _assume_utc(cls, value: dt.datetime) -> dt.datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.timezone.utc)
        return value


class MasterIdWrapped(BaseModel):
    """Storage envelope for a slot; ``value`` is None once released."""

    value: Optional[MasterId] = None
    nonce: str


def compare_master_id(lhs: MasterId, rhs: MasterId) -> bool:
    """True if both records belong to the same owner.

    Records without a session id never match, not even each other.
    """
    return lhs.eid == rhs.eid and lhs.sid == rhs.sid and lhs.sid is not None


def elapsed_ms(since: MasterId, until: MasterId) -> int:
    """Signed whole milliseconds from ``since.now`` to ``until.now``."""
    return (until.now - since.now) // dt.timedelta(milliseconds=1)
