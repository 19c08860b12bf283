"""HALO — Shopify Poller.

Shopify data arrives through webhooks and batch uploads; the poller keeps
its cursors alive without fetching anything.
"""

from halo.connectors.base import SourcePoller
from halo.models.enums import Source
from halo.models.intake_models import PollResult
from halo.models.platform_models import Connection
from halo.models.sync_models import SyncCursor


class ShopifyPoller(SourcePoller):
    source = Source.SHOPIFY.value

    async def poll(self, cursor: SyncCursor, connection: Connection) -> PollResult:
        return PollResult()
