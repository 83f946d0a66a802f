import logging

import httpx

from coachdesk.core.config import settings

logger = logging.getLogger(__name__)

EMAILJS_SEND_URL = "https://api.emailjs.com/api/v1.0/email/send"


def email_configured(template_id: str) -> bool:
    return all([
        settings.EMAILJS_SERVICE_ID,
        settings.EMAILJS_PUBLIC_KEY,
        template_id,
        settings.EMAILJS_PRIVATE_KEY,
    ])


async def _send(template_id: str, to_email: str, template_params: dict, kind: str):
    if not email_configured(template_id):
        logger.info("EmailJS not configured. Skipping %s email to %s", kind, to_email)
        return

    payload = {
        "service_id": settings.EMAILJS_SERVICE_ID,
        "template_id": template_id,
        "user_id": settings.EMAILJS_PUBLIC_KEY,
        "accessToken": settings.EMAILJS_PRIVATE_KEY,
        "template_params": {"to_email": to_email, **template_params},
    }

    logger.info("Sending %s email to %s (template %s)", kind, to_email, template_id)

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.post(EMAILJS_SEND_URL, json=payload)
            response.raise_for_status()
            logger.info("%s email sent to %s", kind.capitalize(), to_email)
    except httpx.HTTPStatusError as e:
        logger.warning(
            "Failed to send %s email to %s. Status %s: %s",
            kind, to_email, e.response.status_code, e.response.text,
        )
    except httpx.HTTPError as e:
        logger.warning("Failed to send %s email to %s: %s", kind, to_email, e)


async def send_welcome_email(to_email: str, name: str, center_name: str, password: str, role: str):
    """
    Sends a welcome email with the temporary password using the EmailJS REST API.
    Runs as a background task; failures are logged, never raised.
    """
    await _send(settings.EMAILJS_TEMPLATE_ID, to_email, {
        "to_name": name,
        "org_name": center_name,
        "role": role,
        "password": password,
    }, "welcome")


async def send_contact_notification(to_email: str, center_name: str, sender_name: str,
                                    sender_email: str, subject: str, message: str):
    """Tell a center admin about a new contact message."""
    await _send(settings.EMAILJS_CONTACT_TEMPLATE_ID, to_email, {
        "org_name": center_name,
        "from_name": sender_name,
        "from_email": sender_email,
        "subject": subject,
        "message": message,
    }, "contact")
