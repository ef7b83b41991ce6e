# wagate: REST gateway for a paired messaging session

from wagate.client.client import GatewayClient, GatewayClientError

__all__ = [
    "GatewayClient",
    "GatewayClientError",
]
