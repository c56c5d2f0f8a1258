#!/usr/bin/env python3
"""
Fetches and decodes contract event logs for one stream over a block window.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .chain import ChainClient
from .contracts import event_topics, normalize_address, normalize_tx_hash, short, to_hex_str
from .errors import DecodeError

logger = logging.getLogger(__name__)


@dataclass
class StreamConfig:
    """An independently cursored event stream: one contract, a fixed event whitelist"""
    name: str
    address: str
    abi: List[Dict[str, Any]]
    events: List[str]
    start_block: int = 0

    def __post_init__(self):
        self.address = normalize_address(self.address)
        self.topics = event_topics(self.abi, self.events)


@dataclass
class DecodedEvent:
    stream: str
    name: str
    args: Dict[str, Any]
    block_number: int
    log_index: int
    transaction_hash: str
    address: str = ""

    @property
    def position(self):
        return (self.block_number, self.log_index)


class ChainLogFetcher:
    """Decodes whitelisted logs for a stream, ordered by (block, log index)"""

    def __init__(self, chain: ChainClient, streams: Dict[str, StreamConfig]):
        self.chain = chain
        self.streams = streams
        self._contracts = {
            name: chain.w3.eth.contract(address=stream.address, abi=stream.abi)
            for name, stream in streams.items()
        }

    def fetch_logs(self, stream_name: str, from_block: int, to_block: int) -> List[DecodedEvent]:
        """
        Fetch and decode one window.

        Transport failures propagate as TransportError so the caller can abort the
        stream without advancing its cursor. Undecodable logs are skipped.
        """
        stream = self.streams[stream_name]
        raw_logs = self.chain.get_logs(stream.address, list(stream.topics.keys()), from_block, to_block)

        events = []
        for log in raw_logs:
            try:
                event = self._decode_log(stream, log)
            except DecodeError as e:
                logger.error(f"[{log.get('blockNumber')}] Skipping undecodable {stream_name} log: {e}")
                continue
            if event is not None:
                events.append(event)

        events.sort(key=lambda ev: ev.position)
        if events:
            logger.info(f"[{to_block}] Found {len(events)} {stream_name} events in blocks {from_block}-{to_block}")
        return events

    def _decode_log(self, stream: StreamConfig, log) -> Optional[DecodedEvent]:
        topics = log.get('topics') or []
        if not topics:
            raise DecodeError("log has no topics")

        topic0 = to_hex_str(topics[0]).lower()
        event_name = stream.topics.get(topic0)
        if event_name is None:
            logger.debug(f"Ignoring non-whitelisted topic {short(topic0)} on {stream.name}")
            return None

        try:
            decoded = getattr(self._contracts[stream.name].events, event_name)().process_log(log)
        except Exception as e:
            raise DecodeError(f"{event_name} tx={normalize_tx_hash(log.get('transactionHash', b''))}: {e}") from e

        return DecodedEvent(
            stream=stream.name,
            name=event_name,
            args=dict(decoded['args']),
            block_number=int(decoded['blockNumber']),
            log_index=int(decoded['logIndex']),
            transaction_hash=normalize_tx_hash(decoded['transactionHash']),
            address=str(decoded['address']),
        )
