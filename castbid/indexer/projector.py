#!/usr/bin/env python3
"""
Projects decoded auction house and collectible events into the relational model.

Every handler is safe to re-run over the same event: inserts are keyed on
natural identifiers and state writes go through the lifecycle model.
"""

import logging
from datetime import datetime, timezone
from enum import Enum

from .chain import ChainClient
from .classifier import TransferClassifier
from .contracts import format_cast_hash, normalize_address, short
from .errors import IllegalTransitionError, OrphanEventError, ReadThroughError
from .fetcher import DecodedEvent
from .lifecycle import AuctionState, check_transition, is_terminal
from .store import ProjectionStore

logger = logging.getLogger(__name__)


class ProjectionOutcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    UPDATED = "updated"
    ORPHAN = "orphan"
    DROPPED = "dropped"
    IGNORED = "ignored"


def _block_time(timestamp: int) -> datetime:
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)


class EventProjector:
    """Dispatches decoded events to per-event handlers"""

    def __init__(self, store: ProjectionStore, chain: ChainClient, classifier: TransferClassifier):
        self.store = store
        self.chain = chain
        self.classifier = classifier
        self._handlers = {
            'AuctionStarted': self._process_auction_started,
            'BidPlaced': self._process_bid_placed,
            'AuctionExtended': self._process_auction_extended,
            'AuctionSettled': self._process_auction_settled,
            'AuctionCancelled': self._process_auction_cancelled,
            'Transfer': self._process_transfer,
        }

    def project(self, event: DecodedEvent) -> ProjectionOutcome:
        handler = self._handlers.get(event.name)
        if handler is None:
            logger.debug(f"[{event.block_number}] No handler for {event.name}")
            return ProjectionOutcome.IGNORED

        try:
            return handler(event)
        except OrphanEventError as e:
            logger.warning(f"[{event.block_number}] Orphan {e.event_name} for {short(e.cast_hash)} tx {short(event.transaction_hash)}, dropping")
            return ProjectionOutcome.ORPHAN
        except ReadThroughError as e:
            logger.error(f"[{event.block_number}] Dropping {event.name}: {e}")
            return ProjectionOutcome.DROPPED
        except IllegalTransitionError as e:
            logger.error(f"[{event.block_number}] Dropping {event.name} tx {short(event.transaction_hash)}: {e}")
            return ProjectionOutcome.DROPPED

    def _require_auction(self, event: DecodedEvent, cast_hash: str):
        auction = self.store.find_auction(cast_hash)
        if auction is None:
            raise OrphanEventError(event.name, cast_hash)
        return auction

    def _process_auction_started(self, event: DecodedEvent) -> ProjectionOutcome:
        args = event.args
        cast_hash = format_cast_hash(args['castHash'])

        if self.store.find_auction(cast_hash) is not None:
            logger.debug(f"[{event.block_number}] Auction {short(cast_hash)} already indexed")
            return ProjectionOutcome.DUPLICATE

        params = self.chain.read_auction_params(cast_hash)
        timestamp = self.chain.get_block_timestamp(event.block_number)

        inserted = self.store.insert_auction({
            'cast_hash': cast_hash,
            'creator_address': normalize_address(args['creator']),
            'creator_fid': int(args['creatorFid']),
            'min_bid': params.min_bid,
            'min_bid_increment_bps': params.min_bid_increment_bps,
            'protocol_fee_bps': params.protocol_fee_bps,
            'duration': params.duration,
            'extension': params.extension,
            'extension_threshold': params.extension_threshold,
            'end_time': _block_time(args['endTime']),
            'transaction_hash': event.transaction_hash,
            'block_number': event.block_number,
            'authorizer': normalize_address(args['authorizer']),
            'state': int(AuctionState.ACTIVE),
            'created_at': _block_time(timestamp),
        })
        if not inserted:
            return ProjectionOutcome.DUPLICATE

        logger.info(f"[{event.block_number}] 🟢 Auction {short(cast_hash)} started by fid {args['creatorFid']}")
        return ProjectionOutcome.INSERTED

    def _process_bid_placed(self, event: DecodedEvent) -> ProjectionOutcome:
        args = event.args
        cast_hash = format_cast_hash(args['castHash'])
        auction = self._require_auction(event, cast_hash)
        timestamp = self.chain.get_block_timestamp(event.block_number)

        inserted = self.store.insert_bid({
            'auction_id': auction['id'],
            'cast_hash': cast_hash,
            'bidder_address': normalize_address(args['bidder']),
            'bidder_fid': int(args['bidderFid']),
            'amount': int(args['amount']),
            'transaction_hash': event.transaction_hash,
            'log_index': event.log_index,
            'block_number': event.block_number,
            'authorizer': normalize_address(args['authorizer']),
            'timestamp': _block_time(timestamp),
        })
        if not inserted:
            return ProjectionOutcome.DUPLICATE

        logger.info(f"[{event.block_number}] 💸 Bid {int(args['amount']) / 1e6:.2f} USDC on {short(cast_hash)} by fid {args['bidderFid']}")
        return ProjectionOutcome.INSERTED

    def _process_auction_extended(self, event: DecodedEvent) -> ProjectionOutcome:
        cast_hash = format_cast_hash(event.args['castHash'])
        auction = self._require_auction(event, cast_hash)

        if is_terminal(auction['state']):
            logger.debug(f"[{event.block_number}] Ignoring extension of closed auction {short(cast_hash)}")
            return ProjectionOutcome.IGNORED

        new_end_time = _block_time(event.args['newEndTime'])
        if not self.store.extend_auction(auction['id'], new_end_time, int(AuctionState.ACTIVE)):
            return ProjectionOutcome.DUPLICATE

        logger.info(f"[{event.block_number}] ⏱️ Auction {short(cast_hash)} extended to {new_end_time.isoformat()}")
        return ProjectionOutcome.UPDATED

    def _process_auction_settled(self, event: DecodedEvent) -> ProjectionOutcome:
        args = event.args
        cast_hash = format_cast_hash(args['castHash'])
        auction = self._require_auction(event, cast_hash)

        if not check_transition(auction['state'], AuctionState.SETTLED):
            return ProjectionOutcome.DUPLICATE

        updated = self.store.update_auction_state(
            auction['id'],
            expected_state=auction['state'],
            new_state=int(AuctionState.SETTLED),
            winner_address=normalize_address(args['winner']),
            winner_fid=int(args['winnerFid']),
            winning_bid=int(args['amount']),
        )
        if not updated:
            return ProjectionOutcome.DUPLICATE

        logger.info(f"[{event.block_number}] 🏁 Auction {short(cast_hash)} settled to fid {args['winnerFid']} for {int(args['amount']) / 1e6:.2f} USDC")
        return ProjectionOutcome.UPDATED

    def _process_auction_cancelled(self, event: DecodedEvent) -> ProjectionOutcome:
        cast_hash = format_cast_hash(event.args['castHash'])
        auction = self._require_auction(event, cast_hash)

        if not check_transition(auction['state'], AuctionState.CANCELLED):
            return ProjectionOutcome.DUPLICATE

        updated = self.store.update_auction_state(
            auction['id'],
            expected_state=auction['state'],
            new_state=int(AuctionState.CANCELLED),
        )
        if not updated:
            return ProjectionOutcome.DUPLICATE

        logger.info(f"[{event.block_number}] ❌ Auction {short(cast_hash)} cancelled")
        return ProjectionOutcome.UPDATED

    def _process_transfer(self, event: DecodedEvent) -> ProjectionOutcome:
        args = event.args
        from_address = normalize_address(args['from'])
        to_address = normalize_address(args['to'])

        if not self.classifier.classify(from_address, to_address):
            return ProjectionOutcome.IGNORED

        timestamp = self.chain.get_block_timestamp(event.block_number)
        inserted = self.store.insert_transfer({
            'from_address': from_address,
            'to_address': to_address,
            'token_id': int(args['tokenId']),
            'is_p2p': True,
            'transaction_hash': event.transaction_hash,
            'log_index': event.log_index,
            'block_number': event.block_number,
            'timestamp': _block_time(timestamp),
        })
        if not inserted:
            return ProjectionOutcome.DUPLICATE

        logger.info(f"[{event.block_number}] 🔁 Token {args['tokenId']} {short(from_address)} -> {short(to_address)}")
        return ProjectionOutcome.INSERTED
