"""HALO — Google Ads Poller.

Google spend is currently delivered via batch upload only.
"""

from halo.connectors.base import SourcePoller
from halo.models.enums import Source
from halo.models.intake_models import PollResult
from halo.models.platform_models import Connection
from halo.models.sync_models import SyncCursor


class GooglePoller(SourcePoller):
    source = Source.GOOGLE.value

    async def poll(self, cursor: SyncCursor, connection: Connection) -> PollResult:
        return PollResult()
