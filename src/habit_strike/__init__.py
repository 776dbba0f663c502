"""habit-strike: recurring habit schedule with backfill and consistency scoring."""

__version__ = "0.1.0"
