"""
Type definitions for fetch_improved_client.
"""
from typing import Callable

import httpx


# A transport wrapper takes the next-inner transport and returns the one that
# wraps it. Wrappers are applied once, when the client is built.
TransportWrapper = Callable[[httpx.AsyncBaseTransport], httpx.AsyncBaseTransport]

SyncTransportWrapper = Callable[[httpx.BaseTransport], httpx.BaseTransport]
