"""
Habit subsystem.

Components:
- dates.py: calendar helpers and the inclusive DateRange
- recurrence.py: recurrence rules (Daily/Weekly/Monthly/OneOff) and the occurrence generator
- models.py: data structures (Blueprint, Instance, DailyStrikeRecord, BackfillResult)
- store.py: SQLite-backed storage for blueprints and instances
- backfill.py: creates missing instances up to "today" without duplicates
- scoring.py: daily strike rates and consistency scores
- trigger.py: periodic loop that invokes backfill
"""
