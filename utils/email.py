# utils/email.py
import logging

import requests

from config import BREVO_API_KEY, EMAIL_SENDER_ADDRESS, EMAIL_SENDER_NAME

logger = logging.getLogger(__name__)

BREVO_URL = "https://api.brevo.com/v3/smtp/email"


class EmailDeliveryError(Exception):
     """Raised when Brevo rejects or cannot accept a message."""


def send_email(to_email: str, subject: str, html_content: str) -> None:
     if not BREVO_API_KEY:
          raise EmailDeliveryError("BREVO_API_KEY is not set")

     response = requests.post(
          BREVO_URL,
          headers={
               "api-key": BREVO_API_KEY,
               "Content-Type": "application/json",
          },
          json={
               "sender": {"name": EMAIL_SENDER_NAME, "email": EMAIL_SENDER_ADDRESS},
               "to": [{"email": to_email}],
               "subject": subject,
               "htmlContent": html_content,
          },
          timeout=10,
     )
     if response.status_code not in (200, 201):
          raise EmailDeliveryError(f"Brevo error: {response.text}")
     logger.info("E-mail '%s' accepted for %s", subject, to_email)
