# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "HABIT_APP_NAME": "App display name (default: habit-strike).",
    "HABIT_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "HABIT_DATA_DIR": "Local data directory for the database and logs (default: .local/habit).",
    "HABIT_DB_PATH": "SQLite database path (default: <data_dir>/habits.sqlite3).",
    # Backfill
    "HABIT_BACKFILL_HORIZON_DAYS": (
        "Never generate more than this many days before today (default: unset, catch up "
        "from each habit's creation date)."
    ),
    "HABIT_BACKFILL_WORKERS": "Habits backfilled in parallel (default: 1, sequential).",
    "HABIT_STORE_TIMEOUT_SECONDS": "SQLite busy timeout per store call (default: 10).",
    # Trigger
    "HABIT_TRIGGER_ENABLED": "Run backfill periodically while the console is open (true/false).",
    "HABIT_TRIGGER_INTERVAL_SECONDS": "Seconds between periodic backfill runs (default: 900).",
    "HABIT_TRIGGER_RETRY_SECONDS": "Delay before retrying a run that reported errors (default: 60).",
    # Store / scoring policy
    "HABIT_DELETE_POLICY": "cascade: deleting a habit deletes its history; orphan: keep it.",
    "HABIT_SCORE_ORPHANS": "Count instances of deleted habits in scores (true/false).",
}
