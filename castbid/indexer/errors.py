"""
Exception types raised by the indexing pipeline.
"""


class IndexerError(Exception):
    """Base class for indexer failures"""


class DecodeError(IndexerError):
    """A log payload could not be decoded against the stream ABI"""


class OrphanEventError(IndexerError):
    """An event references an auction that has not been projected yet"""

    def __init__(self, event_name: str, cast_hash: str):
        super().__init__(f"{event_name} references unknown auction {cast_hash}")
        self.event_name = event_name
        self.cast_hash = cast_hash


class TransportError(IndexerError):
    """The RPC node or the database could not be reached"""


class ReadThroughError(IndexerError):
    """Auction parameters could not be read from the contract"""


class IllegalTransitionError(IndexerError):
    """A state write would move an auction out of a terminal state"""

    def __init__(self, current, target):
        super().__init__(f"Illegal auction transition {current.name} -> {target.name}")
        self.current = current
        self.target = target
