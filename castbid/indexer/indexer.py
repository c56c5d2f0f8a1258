#!/usr/bin/env python3
"""
castbid indexer

Syncs the auction house and collectible event streams into PostgreSQL.
Each stream keeps its own cursor and runs on its own thread and connection.
"""

import os
import sys
import time
import yaml
import logging
import argparse
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .chain import ChainClient
from .classifier import TransferClassifier
from .contracts import is_valid_address, load_abi, short
from .cursor_store import SyncCursorStore
from .errors import IndexerError
from .fetcher import ChainLogFetcher, StreamConfig
from .projector import EventProjector
from .store import ProjectionStore, connect

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict:
    """Load the YAML config, expanding ${VARS} from the environment"""
    with open(config_path, 'r') as f:
        config_content = os.path.expandvars(f.read())

    config = yaml.safe_load(config_content)
    logger.info(f"Loaded configuration for {len(config.get('streams', {}))} streams")
    return config


def apply_log_level(config: Dict) -> None:
    level_str = str(config.get('indexer', {}).get('log_level', 'INFO')).upper()
    logging.getLogger('castbid').setLevel(getattr(logging, level_str, logging.INFO))


@dataclass
class StreamResult:
    """Outcome of one stream's pass within a sync run"""
    stream: str
    cursor_in: int
    cursor_out: int
    windows: int = 0
    outcomes: Counter = field(default_factory=Counter)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StreamSync:
    """Sequential window loop for a single stream"""

    def __init__(self, stream: StreamConfig, fetcher, projector, cursors,
                 batch_size: int = 500, window_delay: float = 0.1, conn=None):
        self.stream = stream
        self.fetcher = fetcher
        self.projector = projector
        self.cursors = cursors
        self.batch_size = batch_size
        self.window_delay = window_delay
        self.conn = conn

    def run(self, head: int) -> StreamResult:
        name = self.stream.name
        cursor = self.cursors.get(name)
        result = StreamResult(stream=name, cursor_in=cursor, cursor_out=cursor)

        from_block = max(cursor + 1, self.stream.start_block)
        if from_block > head:
            logger.debug(f"[{head}] Stream {name} up to date at {cursor}")
            return result

        logger.info(f"[{head}, -{head - cursor}] Stream {name} ({short(self.stream.address)}): syncing from {from_block}")

        try:
            while from_block <= head:
                to_block = min(from_block + self.batch_size - 1, head)

                events = self.fetcher.fetch_logs(name, from_block, to_block)
                for event in events:
                    result.outcomes[self.projector.project(event).value] += 1

                self.cursors.set(name, to_block)
                result.cursor_out = to_block
                result.windows += 1
                logger.debug(f"[{to_block}, -{head - to_block}] Stream {name} committed window {from_block}-{to_block}")

                from_block = to_block + 1
                if from_block <= head and self.window_delay:
                    time.sleep(self.window_delay)

        except IndexerError as e:
            result.error = str(e)
            logger.error(f"[{from_block}] Stream {name} aborted, cursor stays at {result.cursor_out}: {e}")
        except Exception as e:
            result.error = str(e)
            logger.exception(f"[{from_block}] Stream {name} failed, cursor stays at {result.cursor_out}: {e}")

        if result.ok:
            logger.info(f"[{result.cursor_out}] Stream {name} synced {result.windows} windows: {dict(result.outcomes)}")
        return result

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None


class SyncRunner:
    """One sync run: snapshot the head, then drive every selected stream to it"""

    def __init__(self, chain, workers: Dict[str, StreamSync]):
        self.chain = chain
        self.workers = workers

    def run_sync(self, streams: Optional[List[str]] = None) -> Dict[str, StreamResult]:
        names = streams or list(self.workers.keys())
        unknown = [n for n in names if n not in self.workers]
        if unknown:
            raise ValueError(f"Unknown streams: {', '.join(unknown)}")

        head = self.chain.get_block_number()
        logger.info(f"[{head}] 🚀 Sync run for streams: {', '.join(names)}")

        results = {}
        with ThreadPoolExecutor(max_workers=max(len(names), 1), thread_name_prefix='castbid-sync') as executor:
            futures = {executor.submit(self.workers[name].run, head): name for name in names}
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        return results

    def close(self) -> None:
        for worker in self.workers.values():
            worker.close()


def build_stream_configs(config: Dict) -> Dict[str, StreamConfig]:
    streams = {}
    for name, stream_config in config.get('streams', {}).items():
        address = stream_config.get('address')
        if not is_valid_address(address):
            logger.warning(f"Skipping stream {name}: invalid address '{address}'")
            continue
        streams[name] = StreamConfig(
            name=name,
            address=address,
            abi=load_abi(stream_config['abi']),
            events=list(stream_config['events']),
            start_block=int(stream_config.get('start_block', 0)),
        )
    return streams


def build_runner(config: Dict) -> SyncRunner:
    """Wire one chain client, connection and projector per stream"""
    streams = build_stream_configs(config)
    if 'auctions' not in streams:
        raise ValueError("An 'auctions' stream is required")

    auction_address = streams['auctions'].address
    indexer_config = config.get('indexer', {})
    classifier = TransferClassifier(auction_address)

    workers = {}
    head_chain = None
    for name, stream in streams.items():
        chain = ChainClient.from_rpc_url(
            config['rpc_url'],
            auction_address=auction_address,
            auction_abi_path=config['streams']['auctions']['abi'],
        )
        head_chain = head_chain or chain
        conn = connect(config['database']['url'])
        workers[name] = StreamSync(
            stream=stream,
            fetcher=ChainLogFetcher(chain, {name: stream}),
            projector=EventProjector(ProjectionStore(conn), chain, classifier),
            cursors=SyncCursorStore(conn),
            batch_size=int(indexer_config.get('block_batch_size', 500)),
            window_delay=float(indexer_config.get('window_delay', 0.1)),
            conn=conn,
        )

    return SyncRunner(head_chain, workers)


def main():
    """Main entry point"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description='castbid auction and transfer indexer')
    parser.add_argument('--config', '-c',
                        help='Path to config file',
                        default=DEFAULT_CONFIG_PATH)
    parser.add_argument('--stream', '-s',
                        help='Comma-separated list of streams to sync (default: all)',
                        default=None)
    parser.add_argument('--loop', action='store_true',
                        help='Keep syncing every indexer.poll_interval seconds')
    args = parser.parse_args()

    streams = [s.strip() for s in args.stream.split(',')] if args.stream else None

    try:
        config = load_config(args.config)
        apply_log_level(config)
        runner = build_runner(config)
    except Exception as e:
        logger.error(f"Failed to start indexer: {e}")
        sys.exit(1)

    poll_interval = int(config.get('indexer', {}).get('poll_interval', 300))
    exit_code = 0
    try:
        while True:
            try:
                results = runner.run_sync(streams)
                exit_code = 0 if all(r.ok for r in results.values()) else 1
            except IndexerError as e:
                logger.error(f"Sync run failed: {e}")
                exit_code = 1

            if not args.loop:
                break
            logger.debug(f"⏸️  Sleeping for {poll_interval} seconds...")
            time.sleep(poll_interval)
    except KeyboardInterrupt:
        logger.info("Indexer stopped by user")
    finally:
        runner.close()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
