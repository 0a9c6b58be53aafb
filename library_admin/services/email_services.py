import logging
import secrets
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import formataddr
from typing import Optional
from ..core.config import get_settings
from ..core.template_engine import render_template

settings = get_settings()
logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self):
        self.smtp_server = settings.MAIL_SERVER
        self.smtp_port = settings.MAIL_PORT
        self.username = settings.MAIL_USERNAME
        self.password = settings.MAIL_PASSWORD
        self.timeout = settings.MAIL_TIMEOUT
        self.from_email = formataddr((settings.MAIL_FROM_NAME, settings.MAIL_FROM))

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        from_email: Optional[str] = None,
    ) -> None:
        message = MIMEMultipart()
        message["From"] = from_email or self.from_email
        message["To"] = to_email
        message["Subject"] = subject

        html_part = MIMEText(html_content, "html")
        message.attach(html_part)

        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(message)
        except Exception as e:
            logger.error("Error sending email to %s: %s", to_email, e)
            raise

    @staticmethod
    def generate_verification_code() -> str:
        return "".join(secrets.choice("0123456789") for _ in range(6))

    def send_admin_invitation_email(self, to_email: str, login_url: str) -> None:
        self.send_email(
            to_email=to_email,
            subject="You've been invited as a Library Admin!",
            html_content=render_template(
                "email/admin_invitation.html",
                library_name=settings.MAIL_FROM_NAME,
                login_url=login_url,
            ),
        )

    def send_set_password_email(self, to_email: str, link: str) -> None:
        self.send_email(
            to_email=to_email,
            subject="Set up your library admin account",
            html_content=render_template(
                "email/set_password.html",
                link=link,
                expire_hours=settings.INVITATION_EXPIRE_HOURS,
            ),
        )

    def send_reset_password_email(self, to_email: str, code: str) -> None:
        self.send_email(
            to_email=to_email,
            subject="Reset Your Library Admin Password",
            html_content=render_template(
                "email/reset_password.html",
                code=code,
                expire_hours=settings.RESET_PASSWORD_EXPIRE_HOURS,
            ),
        )


email_service = EmailService()
