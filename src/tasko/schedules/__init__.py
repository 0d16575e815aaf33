"""
Schedule subsystem.

Components:
- schedule_models.py: WeeklySchedule, Slot, payload validation
- schedule_store.py: SQLite-backed storage for schedules and slots
- resolver.py: current / next slot and the weekly view
- occurrences.py: expands recurring slots into tasks
"""
