from app.tasks.reminders import send_due_reminders

__all__ = ["send_due_reminders"]
