from typing import Dict, Any, Optional
import sendgrid
from sendgrid.helpers.mail import Mail, Email, To, Content
import asyncio
import logging
from datetime import datetime
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pathlib import Path

from ..core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_DECLINE_REASON = (
    "Your registration does not meet our requirements. "
    "Please review your information and resubmit."
)

TEMPLATES = {
    "resident_approved": {
        "template": "resident_approved.html",
        "subject": "Your Barangay Portal account is verified",
    },
    "resident_declined": {
        "template": "resident_declined.html",
        "subject": "Your Barangay Portal registration was declined",
    },
}


class EmailService:
    """Fire-and-forget templated email via SendGrid. Failures are reported, never raised."""

    def __init__(self):
        self.api_key = settings.SENDGRID_API_KEY
        self.from_email = settings.FROM_EMAIL
        self.from_name = settings.FROM_NAME
        self.support_email = settings.SUPPORT_EMAIL
        self.mock_mode = settings.EMAIL_MOCK_MODE

        # Initialize SendGrid client if not in mock mode
        if not self.mock_mode and self.api_key:
            self.sg = sendgrid.SendGridAPIClient(api_key=self.api_key)
        else:
            self.sg = None
            logger.info("Email service running in MOCK mode")

        template_dir = Path(__file__).parent.parent / 'templates' / 'email'
        self.jinja_env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(['html', 'xml'])
        )

    async def send_email(
        self,
        to_email: str,
        to_name: str,
        subject: str,
        html_content: str,
        plain_content: Optional[str] = None
    ) -> bool:
        """Send an email using SendGrid"""
        try:
            if self.mock_mode:
                logger.info(f"[MOCK EMAIL] To: {to_name} <{to_email}>")
                logger.info(f"[MOCK EMAIL] Subject: {subject}")
                logger.info(f"[MOCK EMAIL] HTML Content: {html_content[:200]}...")
                return True

            if not self.sg:
                logger.error("SendGrid client not initialized")
                return False

            from_email = Email(self.from_email, self.from_name)
            to_email_obj = To(to_email, to_name)

            mail = Mail(from_email, to_email_obj, subject, plain_content or "")
            if html_content:
                mail.add_content(Content("text/html", html_content))

            response = await asyncio.to_thread(self.sg.send, mail)

            if response.status_code in [200, 201, 202]:
                logger.info(f"Email sent successfully to {to_email}")
                return True
            else:
                logger.error(f"Failed to send email. Status: {response.status_code}")
                return False

        except Exception as e:
            logger.error(f"Error sending email: {str(e)}")
            return False

    def render_template(self, template_name: str, **kwargs) -> str:
        """Render email template with data"""
        template = self.jinja_env.get_template(template_name)
        return template.render(**kwargs)

    async def send_templated(self, kind: str, to_email: str, to_name: str, params: Dict[str, Any]) -> bool:
        template_info = TEMPLATES.get(kind)
        if not template_info:
            logger.error(f"Unknown email template kind: {kind}")
            return False

        if not to_email:
            logger.warning(f"No recipient email provided for {kind} notification")
            return False

        try:
            html_content = self.render_template(
                template_info["template"],
                to_name=to_name,
                support_email=self.support_email,
                timestamp=datetime.now(),
                **params,
            )
        except Exception as e:
            logger.error(f"Error rendering email template {template_info['template']}: {str(e)}")
            return False

        return await self.send_email(to_email, to_name, template_info["subject"], html_content)

    async def send_approval_notification(self, email: str, full_name: str) -> bool:
        return await self.send_templated("resident_approved", email, full_name, {"user_email": email})

    async def send_decline_notification(self, email: str, full_name: str, decline_reason: Optional[str]) -> bool:
        return await self.send_templated(
            "resident_declined",
            email,
            full_name,
            {"user_email": email, "decline_reason": decline_reason or DEFAULT_DECLINE_REASON},
        )


email_service = EmailService()
