"""castbid: Base auction house indexer and bidder analytics."""

__version__ = "1.0.0"
