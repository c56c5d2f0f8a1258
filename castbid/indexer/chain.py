#!/usr/bin/env python3
"""
Thin web3.py wrapper used by the indexer for every outbound RPC call.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from web3 import Web3

from .contracts import load_abi, normalize_address, pad_cast_hash, short
from .errors import ReadThroughError, TransportError

logger = logging.getLogger(__name__)

# Provider errors that usually go away with a narrower block range
SPLIT_ERROR_MARKERS = (
    'too many results',
    'response size',
    'limit',
    'timeout',
    'gateway',
    'internal error',
    'server error',
)


@dataclass(frozen=True)
class AuctionParams:
    """Immutable auction configuration read from the auction house contract"""
    min_bid: int
    min_bid_increment_bps: int
    protocol_fee_bps: int
    duration: int
    extension: int
    extension_threshold: int


class ChainClient:
    """RPC access: head height, logs, block timestamps and auction reads"""

    MAX_BLOCK_CACHE = 1000

    def __init__(self, w3: Web3, auction_address: Optional[str] = None, auction_abi_path: str = "abis/auction_house.json",
                 min_split_span: int = 50):
        self.w3 = w3
        self.min_split_span = min_split_span
        self.block_cache: Dict[int, int] = {}
        self.auction_contract = None
        if auction_address:
            self.auction_contract = w3.eth.contract(
                address=normalize_address(auction_address),
                abi=load_abi(auction_abi_path),
            )

    @classmethod
    def from_rpc_url(cls, rpc_url: str, **kwargs) -> "ChainClient":
        w3 = Web3(Web3.HTTPProvider(rpc_url))
        if not w3.is_connected():
            raise TransportError(f"Failed to connect to RPC at {rpc_url}")
        logger.info(f"[{w3.eth.block_number}] Connected to chain {w3.eth.chain_id}")
        return cls(w3, **kwargs)

    def get_block_number(self) -> int:
        try:
            return self.w3.eth.block_number
        except Exception as e:
            raise TransportError(f"Failed to read block height: {e}") from e

    def get_logs(self, address: str, topics: List[str], from_block: int, to_block: int) -> List[Any]:
        """eth_getLogs for any of the given topic0 values, splitting the range on provider limits"""
        try:
            return list(self.w3.eth.get_logs({
                'address': normalize_address(address),
                'topics': [topics],
                'fromBlock': from_block,
                'toBlock': to_block,
            }))
        except Exception as e:
            span = to_block - from_block
            msg = str(e).lower()
            if span > self.min_split_span and any(marker in msg for marker in SPLIT_ERROR_MARKERS):
                mid = from_block + span // 2
                logger.debug(f"Splitting log query {from_block}-{to_block} at {mid}: {e}")
                left = self.get_logs(address, topics, from_block, mid)
                right = self.get_logs(address, topics, mid + 1, to_block)
                return left + right
            raise TransportError(f"get_logs failed for {short(address)} blocks {from_block}-{to_block}: {e}") from e

    def get_block_timestamp(self, block_number: int) -> int:
        """Block timestamp (unix seconds) with a bounded cache"""
        if block_number in self.block_cache:
            return self.block_cache[block_number]

        if len(self.block_cache) >= self.MAX_BLOCK_CACHE:
            oldest_block = min(self.block_cache.keys())
            del self.block_cache[oldest_block]

        try:
            block = self.w3.eth.get_block(block_number)
        except Exception as e:
            raise TransportError(f"Failed to fetch block {block_number}: {e}") from e

        timestamp = int(block['timestamp'])
        self.block_cache[block_number] = timestamp
        return timestamp

    def read_auction_params(self, cast_hash: str) -> AuctionParams:
        """Read-through call to auctions(bytes32) for parameters absent from AuctionStarted"""
        if self.auction_contract is None:
            raise ReadThroughError("Auction contract not configured")
        try:
            data = self.auction_contract.functions.auctions(
                Web3.to_bytes(hexstr=pad_cast_hash(cast_hash))
            ).call()
            params = data[9]
            return AuctionParams(
                min_bid=int(params[0]),
                min_bid_increment_bps=int(params[1]),
                protocol_fee_bps=int(params[2]),
                duration=int(params[3]),
                extension=int(params[4]),
                extension_threshold=int(params[5]),
            )
        except Exception as e:
            raise ReadThroughError(f"Could not read auction data for {cast_hash}: {e}") from e
