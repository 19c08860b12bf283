"""HALO — Abstract Source Adapter & Poller."""

from abc import ABC, abstractmethod
from typing import Any, Dict

from halo.core.errors import ValidationError
from halo.core.timeutil import parse_timestamp
from halo.models.intake_models import IntakeEvent, PollResult
from halo.models.platform_models import Connection
from halo.models.sync_models import SyncCursor


class SourceAdapter(ABC):
    """Maps one raw provider payload to an ``IntakeEvent``.

    Adapters are pure: no I/O, no state. Anything that cannot be
    identified (missing id, missing date, unknown shape) is rejected with
    ``ValidationError`` so ingestion can count it and move on.
    """

    source: str = ""

    @abstractmethod
    def validate_and_extract(self, raw_payload: Dict[str, Any]) -> IntakeEvent:
        """Resolve external id, event type and source timestamp.

        Args:
            raw_payload: The provider payload exactly as received.

        Returns:
            An IntakeEvent carrying the untouched payload.

        Raises:
            ValidationError: required identifying fields are absent or
                the payload shape is not one this source produces.
        """
        ...

    @staticmethod
    def _timestamp(raw_payload: Dict[str, Any], field: str):
        try:
            return parse_timestamp(raw_payload.get(field))
        except ValueError as e:
            raise ValidationError(f"Invalid {field}: {e}") from e


class SourcePoller(ABC):
    """Fetches events newer than a cursor position from one source."""

    source: str = ""

    @abstractmethod
    async def poll(self, cursor: SyncCursor, connection: Connection) -> PollResult:
        """Return events after ``cursor.cursor_value`` and the next position.

        ``next_cursor_value`` of None means "keep the current position".
        """
        ...
