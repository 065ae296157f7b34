"""
=============================================================================
CONFIG.PY — Configuración Global
=============================================================================
Todas las variables de entorno del backend se leen AQUÍ, una sola vez.
Cada una tiene un valor por defecto pensado para desarrollo local.

En PRODUCCIÓN se definen en el panel del proveedor (Railway, etc.):
  DATABASE_URL, SECRET_KEY, SMTP_HOST, SMTP_USERNAME, SMTP_PASSWORD...

El resto de módulos importa las constantes de aquí:
  from config import SECRET_KEY, APP_TIMEZONE
"""

import os
from datetime import datetime, date
from pathlib import Path

import pytz

BASE_DIR = Path(__file__).resolve().parent

# ─────────────────────────────────────────────────────────────────────────────
# BASE DE DATOS
# ─────────────────────────────────────────────────────────────────────────────

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cactus.db")

# ─────────────────────────────────────────────────────────────────────────────
# TOKENS (JWT de acceso + refresh token opaco)
# ─────────────────────────────────────────────────────────────────────────────

SECRET_KEY = os.getenv("SECRET_KEY", "cactus-dev-secret-key-cambiar-en-produccion")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "14"))

COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() in ("1", "true", "yes")
COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None

# ─────────────────────────────────────────────────────────────────────────────
# ZONA HORARIA
# ─────────────────────────────────────────────────────────────────────────────
# Los días de un reto se cuentan en la zona horaria de la app, no en UTC.
# Si no, un registro hecho a las 8:00 en Seúl caería en "ayer".

APP_TIMEZONE = pytz.timezone(os.getenv("APP_TIMEZONE", "Asia/Seoul"))


def now() -> datetime:
    """Hora local de la app, sin tzinfo (así se guarda en la BD)"""
    return datetime.now(APP_TIMEZONE).replace(tzinfo=None)


def today() -> date:
    """Fecha local de la app"""
    return now().date()


# ─────────────────────────────────────────────────────────────────────────────
# MENSAJES DE RIEGO
# ─────────────────────────────────────────────────────────────────────────────
# Fichero de texto con un mensaje por línea (GET /api/challenges/message)

MESSAGE_FILE = os.getenv("MESSAGE_FILE", str(BASE_DIR / "static" / "water.txt"))

# ─────────────────────────────────────────────────────────────────────────────
# EMAIL (SMTP)
# ─────────────────────────────────────────────────────────────────────────────
# Si SMTP_HOST está vacío, los emails solo se escriben en el log.

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
MAIL_FROM = os.getenv("MAIL_FROM", "no-reply@cactus-village.example.com")
MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "선인장 키우기")

# ─────────────────────────────────────────────────────────────────────────────
# CORS
# ─────────────────────────────────────────────────────────────────────────────

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",")]
