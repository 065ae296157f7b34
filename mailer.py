"""
=============================================================================
MAILER.PY — Envío de Emails (SMTP)
=============================================================================
Por ahora solo se usa para la recuperación de contraseña.

Cada email usa una plantilla con nombre (TEMPLATES) y unas variables:

    mailer.send("ana@example.com", "Asunto", "recovery",
                {"username": "ana", "tempPassword": "a1b2c3d4e5"})

Si SMTP_HOST no está configurado, el email solo se escribe en el log
(útil en desarrollo).
"""

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from config import (
    SMTP_HOST, SMTP_PORT, SMTP_USERNAME, SMTP_PASSWORD, MAIL_FROM, MAIL_FROM_NAME
)

logger = logging.getLogger("cactus.mailer")

TEMPLATES = {
    "recovery": (
        "<html><body>"
        "<h2>안녕하세요, {username}님!</h2>"
        "<p>선인장 키우기의 임시 비밀번호입니다.</p>"
        "<p><strong>{tempPassword}</strong></p>"
        "<p>로그인 후 비밀번호를 꼭 변경해 주세요.</p>"
        "</body></html>"
    ),
}


def render(template_name: str, variables: dict) -> str:
    """Plantilla con las variables escapadas para HTML"""
    escaped = {key: html.escape(str(value)) for key, value in variables.items()}
    return TEMPLATES[template_name].format_map(escaped)


class EmailSender:
    """Envía emails HTML por SMTP"""

    def __init__(self, host: str = SMTP_HOST, port: int = SMTP_PORT,
                 username: str = SMTP_USERNAME, password: str = SMTP_PASSWORD):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_header = formataddr((MAIL_FROM_NAME, MAIL_FROM))

    def send(self, destination: str, subject: str, template_name: str, variables: dict) -> bool:
        """True si el email salió; los fallos solo se registran en el log"""
        body = render(template_name, variables)

        if not self.host:
            logger.info(f"📧 (sin SMTP) Email '{template_name}' para {destination}")
            return False

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.from_header
        message["To"] = destination
        message.attach(MIMEText(body, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.host, self.port) as server:
                server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(MAIL_FROM, destination, message.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"❌ Error enviando email '{template_name}' a {destination}: {e}")
            return False

        logger.info(f"📧 Email '{template_name}' enviado a {destination}")
        return True
