from celery import shared_task

from collabhub.users.services import send_account_email


@shared_task(name="users.send_account_email")
def send_account_email_task(kind: str, user_id: int, token: str) -> None:
    send_account_email(kind, user_id, token)
