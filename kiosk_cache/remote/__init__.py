"""
Remote authority client for kiosk-cache.

    - models: CatalogEntry and RemoteKeyRecord, translated from the wire
    - gateway: aiohttp client (catalog, keys, last-used, downloads)
"""

from kiosk_cache.remote.gateway import RemoteGateway
from kiosk_cache.remote.models import CatalogEntry, RemoteKeyRecord

__all__ = [
    "RemoteGateway",
    "CatalogEntry",
    "RemoteKeyRecord",
]
