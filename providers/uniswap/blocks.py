"""
Ethereum Block Height Resolution

Historical Uniswap snapshots are queried by block number, so each look-back
timestamp must first be turned into a block height. The ethereum-blocks
subgraph answers that with the first block mined within ten minutes after
the timestamp.
"""

from typing import Dict, Mapping, Optional

from core.config import settings
from core.logging import get_logger
from core.parsing import FieldPolicy, extract_decimal
from core.schemas import TimePeriod
from .graph_client import GraphClient


# Search window after each timestamp
BLOCK_SEARCH_WINDOW = 600


def blocks_query(timestamps: Mapping[TimePeriod, int]) -> str:
    """
    One aliased `blocks` selection per period.

    Example:
        >>> blocks_query({TimePeriod.HOUR_24: 1700000000})
        'hour24: blocks(first: 1, orderBy: timestamp, orderDirection: asc, where: {timestamp_gt: 1700000000, timestamp_lt: 1700000600}) { number }'
    """
    return " ".join(
        f"{period.value}: blocks(first: 1, orderBy: timestamp, orderDirection: asc, "
        f"where: {{timestamp_gt: {timestamp}, timestamp_lt: {timestamp + BLOCK_SEARCH_WINDOW}}}) {{ number }}"
        for period, timestamp in timestamps.items()
    )


class EthBlocksGraphProvider:
    """
    Block height source backed by the ethereum-blocks subgraph.

    Example:
        >>> heights = await blocks.block_heights({TimePeriod.HOUR_24: now - 86400})
        >>> heights[TimePeriod.HOUR_24]
        18560123
    """

    def __init__(self, url: Optional[str] = None, graph: Optional[GraphClient] = None):
        self.graph = graph or GraphClient(url or settings.eth_blocks_subgraph_url)
        self.logger = get_logger(__name__)

    async def block_heights(self, timestamps: Mapping[TimePeriod, int]) -> Dict[TimePeriod, int]:
        """
        Resolve block heights for several timestamps in one request.

        Periods with no block in their search window are left out of the result.

        Raises:
            MalformedResponseError: A returned block has no numeric `number`
        """
        if not timestamps:
            return {}

        data = await self.graph.query(blocks_query(timestamps))

        heights: Dict[TimePeriod, int] = {}
        for period in timestamps:
            blocks = data.get(period.value)
            if not isinstance(blocks, list) or not blocks or not isinstance(blocks[0], dict):
                self.logger.warning(f"No block found for {period.value} at {timestamps[period]}")
                continue
            heights[period] = int(extract_decimal(blocks[0], "number", FieldPolicy.REQUIRED))

        return heights
