#!/usr/bin/env python3
"""
Shared fixtures: in-memory stand-ins for the chain, the projection store and
the cursor store, plus a factory that builds real ABI-encoded logs.
"""

import itertools
from datetime import datetime, timezone

import pytest
from hexbytes import HexBytes
from web3 import Web3

from castbid.indexer.chain import AuctionParams
from castbid.indexer.classifier import TransferClassifier
from castbid.indexer.contracts import event_topic, format_cast_hash, load_abi, to_hex_str
from castbid.indexer.errors import TransportError
from castbid.indexer.fetcher import ChainLogFetcher, StreamConfig
from castbid.indexer.indexer import StreamSync
from castbid.indexer.projector import EventProjector

AUCTION_ADDRESS = "0xFC52e33F48Dd3fcd5EE428c160722efda645D74A"
COLLECTIBLE_ADDRESS = "0x1111111111111111111111111111111111111111"
ALICE = "0x000000000000000000000000000000000000a11c"
BOB = "0x0000000000000000000000000000000000000b0b"
CAROL = "0x00000000000000000000000000000000000ca201"
AUTHORIZER = "0x00000000000000000000000000000000000a0742"

BASE_TIMESTAMP = 1_700_000_000


def block_time(block_number: int) -> datetime:
    return datetime.fromtimestamp(BASE_TIMESTAMP + block_number * 2, tz=timezone.utc)


class FakeChain:
    """ChainClient stand-in serving logs from memory"""

    def __init__(self, head: int = 1000):
        self.w3 = Web3()
        self.head = head
        self.logs = []
        self.params = AuctionParams(
            min_bid=1_000_000,
            min_bid_increment_bps=1000,
            protocol_fee_bps=1000,
            duration=86400,
            extension=900,
            extension_threshold=900,
        )
        self.unreadable = set()
        self.fail_logs_for = set()
        self.read_calls = []

    def get_block_number(self) -> int:
        return self.head

    def get_logs(self, address, topics, from_block, to_block):
        if address.lower() in self.fail_logs_for:
            raise TransportError(f"get_logs failed for blocks {from_block}-{to_block}")
        wanted = {t.lower() for t in topics}
        return [
            log for log in self.logs
            if from_block <= log['blockNumber'] <= to_block
            and log['address'].lower() == address.lower()
            and to_hex_str(log['topics'][0]).lower() in wanted
        ]

    def get_block_timestamp(self, block_number: int) -> int:
        return BASE_TIMESTAMP + block_number * 2

    def read_auction_params(self, cast_hash: str) -> AuctionParams:
        from castbid.indexer.errors import ReadThroughError

        self.read_calls.append(cast_hash)
        if cast_hash in self.unreadable:
            raise ReadThroughError(f"Could not read auction data for {cast_hash}")
        return self.params


class LogFactory:
    """Builds raw logs the way an RPC node returns them"""

    def __init__(self, chain: FakeChain):
        self.chain = chain
        self.codec = chain.w3.codec
        self._abis = {
            AUCTION_ADDRESS: {e['name']: e for e in load_abi("abis/auction_house.json") if e['type'] == 'event'},
            COLLECTIBLE_ADDRESS: {e['name']: e for e in load_abi("abis/collectible.json") if e['type'] == 'event'},
        }
        self._tx = itertools.count(1)

    def _encode(self, address, name, values, block, log_index, tx_hash=None):
        abi = self._abis[address][name]
        topics = [HexBytes(event_topic(abi))]
        data_types, data_values = [], []
        for arg in abi['inputs']:
            value = values[arg['name']]
            if arg['type'] == 'address':
                value = value.lower()
            if arg['indexed']:
                topics.append(HexBytes(self.codec.encode([arg['type']], [value])))
            else:
                data_types.append(arg['type'])
                data_values.append(value)

        tx_hash = tx_hash or '0x' + f"{next(self._tx):064x}"
        log = {
            'address': address,
            'topics': topics,
            'data': HexBytes(self.codec.encode(data_types, data_values)),
            'blockNumber': block,
            'logIndex': log_index,
            'transactionIndex': 0,
            'transactionHash': HexBytes(tx_hash),
            'blockHash': HexBytes('0x' + f"{block:064x}"),
            'removed': False,
        }
        self.chain.logs.append(log)
        return log

    @staticmethod
    def cast_bytes(cast_hash: str) -> bytes:
        return bytes.fromhex(format_cast_hash(cast_hash)[2:].rjust(64, '0'))

    def auction_started(self, cast_hash, creator_fid=100, creator=ALICE, end_time=None, block=10, log_index=0, **kw):
        return self._encode(AUCTION_ADDRESS, 'AuctionStarted', {
            'castHash': self.cast_bytes(cast_hash),
            'creator': creator,
            'creatorFid': creator_fid,
            'endTime': end_time or BASE_TIMESTAMP + 86400,
            'authorizer': AUTHORIZER,
        }, block, log_index, **kw)

    def bid_placed(self, cast_hash, bidder_fid, amount, bidder=BOB, block=20, log_index=0, **kw):
        return self._encode(AUCTION_ADDRESS, 'BidPlaced', {
            'castHash': self.cast_bytes(cast_hash),
            'bidder': bidder,
            'bidderFid': bidder_fid,
            'amount': amount,
            'authorizer': AUTHORIZER,
        }, block, log_index, **kw)

    def auction_extended(self, cast_hash, new_end_time, block=30, log_index=0, **kw):
        return self._encode(AUCTION_ADDRESS, 'AuctionExtended', {
            'castHash': self.cast_bytes(cast_hash),
            'newEndTime': new_end_time,
        }, block, log_index, **kw)

    def auction_settled(self, cast_hash, winner_fid, amount, winner=BOB, block=40, log_index=0, **kw):
        return self._encode(AUCTION_ADDRESS, 'AuctionSettled', {
            'castHash': self.cast_bytes(cast_hash),
            'winner': winner,
            'winnerFid': winner_fid,
            'amount': amount,
        }, block, log_index, **kw)

    def auction_cancelled(self, cast_hash, refunded_fid=0, refunded=BOB, block=40, log_index=0, **kw):
        return self._encode(AUCTION_ADDRESS, 'AuctionCancelled', {
            'castHash': self.cast_bytes(cast_hash),
            'refundedBidder': refunded,
            'refundedBidderFid': refunded_fid,
            'authorizer': AUTHORIZER,
        }, block, log_index, **kw)

    def transfer(self, from_address, to_address, token_id, block=50, log_index=0, **kw):
        return self._encode(COLLECTIBLE_ADDRESS, 'Transfer', {
            'from': from_address,
            'to': to_address,
            'tokenId': token_id,
        }, block, log_index, **kw)


class MemoryStore:
    """ProjectionStore with the same idempotence contracts, kept in dicts"""

    def __init__(self):
        self.auctions = {}
        self.bids = {}
        self.transfers = {}
        self._ids = itertools.count(1)
        self.fail_on_write = None
        self.writes = 0

    def _write(self):
        self.writes += 1
        if self.fail_on_write is not None and self.writes >= self.fail_on_write:
            raise TransportError("database went away")

    def find_auction(self, cast_hash):
        auction = self.auctions.get(cast_hash)
        return dict(auction) if auction else None

    def insert_auction(self, auction):
        self._write()
        if auction['cast_hash'] in self.auctions:
            return False
        self.auctions[auction['cast_hash']] = {
            **auction, 'id': next(self._ids), 'winner_address': None, 'winner_fid': None, 'winning_bid': None,
        }
        return True

    def insert_bid(self, bid):
        self._write()
        key = (bid['transaction_hash'], bid['log_index'])
        if key in self.bids:
            return False
        self.bids[key] = dict(bid)
        return True

    def update_auction_state(self, auction_id, expected_state, new_state,
                             winner_address=None, winner_fid=None, winning_bid=None):
        self._write()
        for auction in self.auctions.values():
            if auction['id'] == auction_id and auction['state'] == expected_state:
                auction.update(state=new_state, winner_address=winner_address,
                               winner_fid=winner_fid, winning_bid=winning_bid)
                return True
        return False

    def extend_auction(self, auction_id, new_end_time, active_state):
        self._write()
        for auction in self.auctions.values():
            if auction['id'] == auction_id and auction['state'] == active_state and auction['end_time'] < new_end_time:
                auction['end_time'] = new_end_time
                return True
        return False

    def insert_transfer(self, transfer):
        self._write()
        key = (transfer['transaction_hash'], transfer['token_id'])
        if key in self.transfers:
            return False
        self.transfers[key] = dict(transfer)
        return True

    def snapshot(self):
        return (
            sorted((k, sorted(v.items())) for k, v in self.auctions.items()),
            sorted((k, sorted(v.items())) for k, v in self.bids.items()),
            sorted((k, sorted(v.items())) for k, v in self.transfers.items()),
        )


class MemoryCursorStore:
    def __init__(self):
        self.cursors = {}

    def get(self, stream_id):
        return self.cursors.get(stream_id, 0)

    def set(self, stream_id, block_number):
        self.cursors[stream_id] = max(self.cursors.get(stream_id, 0), block_number)


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def logs(chain):
    return LogFactory(chain)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def cursors():
    return MemoryCursorStore()


@pytest.fixture
def streams():
    return {
        'auctions': StreamConfig(
            name='auctions',
            address=AUCTION_ADDRESS,
            abi=load_abi("abis/auction_house.json"),
            events=['AuctionStarted', 'BidPlaced', 'AuctionExtended', 'AuctionSettled', 'AuctionCancelled'],
        ),
        'transfers': StreamConfig(
            name='transfers',
            address=COLLECTIBLE_ADDRESS,
            abi=load_abi("abis/collectible.json"),
            events=['Transfer'],
        ),
    }


@pytest.fixture
def fetcher(chain, streams):
    return ChainLogFetcher(chain, streams)


@pytest.fixture
def projector(store, chain):
    return EventProjector(store, chain, TransferClassifier(AUCTION_ADDRESS))


@pytest.fixture
def make_worker(streams, fetcher, projector, cursors):
    def _make(name='auctions', batch_size=500):
        return StreamSync(streams[name], fetcher, projector, cursors, batch_size=batch_size, window_delay=0)
    return _make
