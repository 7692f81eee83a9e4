"""Data models for chatrelay."""

from dataclasses import dataclass
from enum import StrEnum


class DeliveryMode(StrEnum):
    """How the poster reflects update events in the conversation."""

    UPDATE = "update"
    THREAD = "thread"

    @classmethod
    def from_config(cls, value: object) -> "DeliveryMode":
        """Map a configured stream mode to a delivery mode.

        Anything other than ``thread`` means update-in-place.
        """
        if isinstance(value, str) and value.strip().lower() == cls.THREAD:
            return cls.THREAD
        return cls.UPDATE


@dataclass(frozen=True, slots=True)
class Job:
    """One mention waiting to be answered."""

    channel: str
    ts: str
    user: str
    query: str


@dataclass(frozen=True, slots=True)
class UpdateEvent:
    """One observable state of a job's answer.

    ``text`` is cumulative, ``final`` is set exactly once per job.
    """

    channel: str
    ts: str
    text: str
    final: bool = False


@dataclass(frozen=True, slots=True)
class BackendRequest:
    """Payload sent to the backend stream endpoint."""

    user_id: str
    query: str

    def to_payload(self) -> dict[str, str]:
        return {"user_id": self.user_id, "query": self.query}
