"""
Uniswap v2 Subgraph Query Builders

Each function returns GraphQL fields (without the outer braces), so several
can be joined into one batched request:

    body = " ".join([token_day_datas(addresses, ts), eth_price()])
"""

from typing import Optional, Sequence


TOKEN_FIELDS = "id symbol name derivedETH tradeVolumeUSD totalLiquidity"


def _block_argument(block_height: Optional[int]) -> str:
    return f", block: {{number: {block_height}}}" if block_height is not None else ""


def day_data_alias(index: int) -> str:
    return f"o{index}"


def token_day_datas(addresses: Sequence[str], timestamp: int) -> str:
    """
    Latest day datum at or before `timestamp` for each token, aliased o0, o1, ...

    Example:
        >>> token_day_datas(["0xabc"], 1700000000)
        'o0: tokenDayDatas(first: 1, orderBy: date, orderDirection: desc, where: {date_lte: 1700000000, token: "0xabc"}) { token { id symbol derivedETH } priceUSD }'
    """
    return " ".join(
        f"{day_data_alias(index)}: tokenDayDatas(first: 1, orderBy: date, orderDirection: desc, "
        f"where: {{date_lte: {timestamp}, token: \"{address}\"}}) "
        f"{{ token {{ id symbol derivedETH }} priceUSD }}"
        for index, address in enumerate(addresses)
    )


def eth_price(block_height: Optional[int] = None) -> str:
    """ETH price in USD from the subgraph bundle."""
    return f"bundle(id: 1{_block_argument(block_height)}) {{ ethPrice }}"


def top_tokens(item_count: int, block_height: Optional[int] = None) -> str:
    return (
        f"tokens(first: {item_count}, orderBy: tradeVolumeUSD, orderDirection: desc"
        f"{_block_argument(block_height)}) {{ {TOKEN_FIELDS} }} "
        + eth_price(block_height)
    )


def tokens_by_address(addresses: Sequence[str], block_height: Optional[int] = None) -> str:
    ids = ", ".join(f"\"{address}\"" for address in addresses)
    return (
        f"tokens(first: {len(addresses)}, where: {{id_in: [{ids}]}}"
        f"{_block_argument(block_height)}) {{ {TOKEN_FIELDS} }} "
        + eth_price(block_height)
    )
