"""
GraphQL Client for The Graph Subgraphs

POSTs `{"query": "{...}"}` over the shared HttpTransport and unwraps the
`data` object. GraphQL-level errors arrive with HTTP 200 and an `errors`
array; they are raised as MalformedResponseError.
"""

from typing import Any, Dict, Optional

from core.errors import MalformedResponseError
from core.logging import get_logger
from core.parsing import require_mapping
from core.transport import HttpTransport


class GraphClient:
    """
    Client for one subgraph endpoint.

    Attributes:
        url: Subgraph GraphQL endpoint
        transport: Shared HttpTransport (assigned by the owning provider)
    """

    def __init__(self, url: str, transport: Optional[HttpTransport] = None):
        self.url = url
        self.transport = transport
        self.logger = get_logger(__name__)

    async def query(self, body: str) -> Dict[str, Any]:
        """
        Run a query and return its `data` object.

        Args:
            body: Query fields without the outer braces

        Raises:
            RuntimeError: No transport assigned
            TransportError: HTTP failure
            MalformedResponseError: GraphQL errors or missing `data`
        """
        if self.transport is None:
            raise RuntimeError("GraphClient has no transport. Initialize the owning provider first.")

        response = require_mapping(await self.transport.post(self.url, {"query": f"{{{body}}}"}), "graph response")

        errors = response.get("errors")
        if errors:
            messages = "; ".join(
                str(error.get("message", error)) if isinstance(error, dict) else str(error)
                for error in errors
            )
            self.logger.error(f"GraphQL errors from {self.url}: {messages}")
            raise MalformedResponseError(f"GraphQL errors: {messages}")

        return require_mapping(response.get("data"), "graph data")
