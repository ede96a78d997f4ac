"""Configuration for the Ingestion Layer."""

import os
from dataclasses import dataclass, field
from typing import Dict
from dotenv import load_dotenv

load_dotenv()


@dataclass
class FeedConfig:
    """Endpoints and subscription options for the reference and comparator feeds."""

    # Reference feed (gateway or Cloud API)
    gateway_ws_uri: str = field(
        default_factory=lambda: os.getenv("GATEWAY_WS_URI", "ws://127.0.0.1:28333/ws")
    )
    cloud_api_ws_uri: str = field(
        default_factory=lambda: os.getenv("CLOUD_API_WS_URI", "wss://api.blxrbdn.com/ws")
    )
    use_cloud_api: bool = field(
        default_factory=lambda: os.getenv("USE_CLOUD_API", "false").lower() == "true"
    )
    auth_header: str = field(default_factory=lambda: os.getenv("AUTH_HEADER", ""))
    feed_name: str = field(default_factory=lambda: os.getenv("FEED_NAME", ""))

    # Comparator feed (EVM node)
    node_ws_uri: str = field(
        default_factory=lambda: os.getenv("NODE_WS_URI", "ws://127.0.0.1:8546")
    )
    # Detail lookups go to the node unless a separate RPC endpoint is given
    lookup_uri: str = field(default_factory=lambda: os.getenv("LOOKUP_URI", ""))

    # Gateway subscription options
    exclude_duplicates: bool = True
    exclude_from_blockchain: bool = False
    use_go_gateway: bool = False

    # Connection settings
    connect_attempts: int = 3
    open_timeout: float = 10.0
    ping_interval: float = 30.0
    lookup_timeout: float = 10.0

    @property
    def reference_uri(self) -> str:
        """Gateway or Cloud API WebSocket URI, depending on use_cloud_api."""
        if self.use_cloud_api:
            return self.cloud_api_ws_uri
        return self.gateway_ws_uri

    @property
    def content_lookup_uri(self) -> str:
        return self.lookup_uri or self.node_ws_uri

    @property
    def reference_headers(self) -> Dict[str, str]:
        if self.auth_header:
            return {"Authorization": self.auth_header}
        return {}
