# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py` (it is gitignored)

Prefer `.env` for everything else. Only the names below are read.
"""

# Example: only catch up the last two weeks after a long break
# BACKFILL_HORIZON_DAYS = 14

# Example: disable the periodic trigger (use /refresh manually)
# TRIGGER_ENABLED = False
