# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets (EDUPLAN_API_TOKEN). Use a local, gitignored .env.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "EDUPLAN_APP_NAME": "App display name (default: eduplan-reminders).",
    "EDUPLAN_LOG_LEVEL": "Console logging level (default: INFO).",
    "EDUPLAN_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    # Calendar backend
    "EDUPLAN_API_BASE_URL": "Platform base URL serving /api/calendar (empty => local SQLite store).",
    "EDUPLAN_API_TOKEN": "Optional bearer token sent to the calendar API.",
    "EDUPLAN_HTTP_TIMEOUT_SECONDS": "HTTP timeout for calendar API calls (default: 10).",
    # Session
    "EDUPLAN_USER_ID": "Log this user in at startup (optional).",
    "EDUPLAN_TIMEZONE": "IANA zone for task wall-clock times (empty => system local; unknown names abort startup).",
    # Scheduler tuning
    "EDUPLAN_CHECK_INTERVAL_SECONDS": "Seconds between notification checks (default: 60).",
    "EDUPLAN_REFETCH_INTERVAL_SECONDS": "Seconds between task refetches; 0 disables (default: 0).",
    "EDUPLAN_WINDOW_DAYS": "Days ahead of today to load tasks for (default: 7).",
    # Paths (gitignored)
    "EDUPLAN_DATA_DIR": "Local data directory (default: .local/eduplan).",
    "EDUPLAN_TASKS_DB_PATH": "Local calendar SQLite path (default: <data_dir>/calendar.sqlite3).",
}
