"""HALO — Connector Registry.

Single lookup point from a source name to its adapter and poller.
Adding a source means registering both here.
"""

from typing import Dict

from halo.connectors.base import SourceAdapter, SourcePoller
from halo.connectors.google.adapter import GoogleAdapter
from halo.connectors.google.poller import GooglePoller
from halo.connectors.meta.adapter import MetaAdapter
from halo.connectors.meta.poller import MetaPoller
from halo.connectors.shopify.adapter import ShopifyAdapter
from halo.connectors.shopify.poller import ShopifyPoller
from halo.core.errors import UnknownSourceError
from halo.models.enums import Source

ADAPTERS: Dict[str, SourceAdapter] = {
    Source.SHOPIFY.value: ShopifyAdapter(),
    Source.META.value: MetaAdapter(),
    Source.GOOGLE.value: GoogleAdapter(),
}

POLLERS: Dict[str, SourcePoller] = {
    Source.SHOPIFY.value: ShopifyPoller(),
    Source.META.value: MetaPoller(),
    Source.GOOGLE.value: GooglePoller(),
}


def get_adapter(source: str) -> SourceAdapter:
    try:
        return ADAPTERS[source]
    except KeyError:
        raise UnknownSourceError(source) from None


def get_poller(source: str) -> SourcePoller:
    try:
        return POLLERS[source]
    except KeyError:
        raise UnknownSourceError(source) from None
