from celery import shared_task

from collabhub.tasks.services import send_overdue_emails


@shared_task(name="tasks.send_overdue_emails")
def send_overdue_emails_task() -> int:
    """Email assignees whose tasks are past due; each task is mailed at most once."""
    return send_overdue_emails()
