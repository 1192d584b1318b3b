import logging
from typing import Optional
import boto3
from botocore.exceptions import ClientError
from eventpass.config import settings
from eventpass.database import get_db_connection
from eventpass.models.notification import Notification
from eventpass.templates.ticket_templates import render_notification

logger = logging.getLogger(__name__)


def get_ses_client():
    """Get AWS SES client"""
    return boto3.client(
        'ses',
        region_name=settings.aws_region,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key
    )


async def send_email(
    to_email: str,
    subject: str,
    text_body: str,
    html_body: Optional[str] = None
) -> bool:
    """Send email via AWS SES"""
    try:
        client = get_ses_client()

        message = {
            'Subject': {'Data': subject, 'Charset': 'UTF-8'},
            'Body': {
                'Text': {'Data': text_body, 'Charset': 'UTF-8'}
            }
        }

        if html_body:
            message['Body']['Html'] = {'Data': html_body, 'Charset': 'UTF-8'}

        response = client.send_email(
            Source=f"{settings.aws_ses_from_name} <{settings.aws_ses_from_email}>",
            Destination={'ToAddresses': [to_email]},
            Message=message
        )

        logger.info(f"Email sent to {to_email}: {response['MessageId']}")
        return True

    except ClientError as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def get_recipient_email(user_id: str) -> Optional[str]:
    """Look up the email address of a profile"""
    async with get_db_connection(use_transaction=False) as conn:
        return await conn.fetchval(
            "SELECT email FROM profiles WHERE id = $1::uuid", user_id
        )


async def send_notification_email(notification: Notification) -> bool:
    """
    Render and send one notification.

    Returns False when the send should be retried. A recipient without an
    email address is reported as sent since retrying cannot help.
    """
    to_email = await get_recipient_email(notification.recipient)
    if not to_email:
        logger.warning(f"No email for recipient {notification.recipient}, skipping {notification.template_kind.value}")
        return True

    subject, text_body = render_notification(notification)
    return await send_email(to_email, subject, text_body)
