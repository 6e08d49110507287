"""
mailer/sender.py -- SMTP delivery of templated plain-text mail.

Templates are Jinja2 files under mailer/templates/. Delivery is synchronous
smtplib; callers that must not block a response schedule send_safely() as a
background task instead of calling send() inline.

An empty SMTP host disables delivery: the message is logged (without the
body, which may contain a reset token) and dropped. Local development needs
no mail server that way.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from core.config import Settings

logger = logging.getLogger("gameportal.mailer")

_TEMPLATE_DIR = Path(__file__).parent / "templates"


class Mailer:
    """Render and send mail using the SMTP settings from core.config."""

    def __init__(self, settings: Settings) -> None:
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls
        self.sender = settings.mail_from
        self._env = Environment(
            loader=FileSystemLoader(str(_TEMPLATE_DIR)),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def render(self, template: str, context: dict) -> str:
        return self._env.get_template(template).render(**context)

    def send(self, to: str, subject: str, template: str, context: dict) -> None:
        """Render template and deliver it. Raises smtplib/OS errors on failure."""
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.set_content(self.render(template, context))

        if not self.host:
            logger.info("Mail delivery disabled, dropping %r to %s", subject, to)
            return

        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)
        logger.info("Sent %r to %s", subject, to)

    def send_safely(self, to: str, subject: str, template: str, context: dict) -> bool:
        """send() for background tasks: failures are logged, never raised.

        Returns True on success so tests and scripts can check the outcome.
        """
        try:
            self.send(to, subject, template, context)
        except (smtplib.SMTPException, OSError, TemplateError):
            logger.exception("Failed to send %r to %s", subject, to)
            return False
        return True
