"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Notification, enums)
- task_store.py: SQLite-backed storage for tasks and notifications
- notification_scanner.py: periodic sweep that raises notifications and
  triggers daily occurrence generation
"""
