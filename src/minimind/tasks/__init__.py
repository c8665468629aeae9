"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Project, Repeat, ReminderSettings)
- recurrence.py: recurrence projection (occurs_on, next_occurrence)
- task_store.py: in-memory store with JSON snapshot persistence
- agenda.py: per-day grouping used by the day view
- reminders.py: in-process reminder scheduler
"""
