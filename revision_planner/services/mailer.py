# revision_planner/services/mailer.py

import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from dotenv import load_dotenv

# Load .env credentials
load_dotenv()

logger = logging.getLogger(__name__)

EMAIL_USER = os.getenv("SMTP_USERNAME")
EMAIL_PASS = os.getenv("SMTP_PASSWORD")
SMTP_SERVER = os.getenv("SMTP_SERVER", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))


def send_email(recipient: str, subject: str, body: str) -> bool:
    """
    Sends an HTML email over SMTP. Delivery problems are logged, never raised.
    """
    if not EMAIL_USER or not EMAIL_PASS:
        logger.warning("mailer: SMTP credentials missing; skipping email to %s", recipient)
        return False

    msg = MIMEMultipart()
    msg["From"] = EMAIL_USER
    msg["To"] = recipient
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "html"))

    try:
        with smtplib.SMTP(SMTP_SERVER, SMTP_PORT) as server:
            server.starttls()
            server.login(EMAIL_USER, EMAIL_PASS)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("mailer: failed to send email to %s: %s", recipient, exc)
        return False

    logger.info("mailer: email sent to %s", recipient)
    return True


def send_free_trial_email(recipient: str, firstname: str, days: int) -> bool:
    return send_email(
        recipient=recipient,
        subject="Your free trial is active",
        body=(
            f"<h3>Hi {firstname},</h3>"
            f"<p>Your {days}-day free trial is now active. "
            "Your weekly revision planner will be ready shortly.</p>"
        ),
    )
