"""Calendar task reminders and notifications for the EduPlan platform."""

__version__ = "0.1.0"
