"""
Task reminder subsystem.

Components:
- time_utils.py: 12-hour clock parsing, "N hours ago" formatting
- task_models.py: data structures (Task, ReminderConfig, NotificationEvent, enums)
- task_store.py: SQLite-backed calendar store (local backend)
- task_source.py: window-bounded task loading + store adapter
- notification_evaluator.py: which notifications fire now (with de-duplication)
- notification_dispatcher.py: toasts, reminder board, mark-as-sent
- reminder_scheduler.py: polling loop driven by login/logout
"""
