"""Local wallet state storage: cache, remote cursors, xpub positions and transaction index keys."""

__version__ = "0.3.0"