"""certano: offline-first quiz sessions and result synchronization."""

__version__ = "0.1.0"
