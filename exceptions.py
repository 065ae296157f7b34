"""
=============================================================================
EXCEPTIONS.PY — Errores de Negocio
=============================================================================
Todos los errores "esperados" del dominio se lanzan con UNA sola excepción:

    raise BusinessLogicException(ExceptionCode.MEMBER_NOT_FOUND)

main.py la convierte en una respuesta JSON con el status HTTP del código:

    {"status": 404, "code": "MEMBER_NOT_FOUND", "message": "..."}
"""

import enum


class ExceptionCode(enum.Enum):
    """Código de error → (status HTTP, mensaje)"""

    # ── Miembros / autenticación ──
    MEMBER_NOT_FOUND = (404, "Usuario no encontrado")
    MEMBER_NOT_MATCH = (401, "Email o contraseña incorrectos")
    MEMBER_EXISTS = (409, "El email o el nombre de usuario ya están en uso")
    NO_AUTHENTICATION = (401, "Sesión no válida o expirada")

    # ── Retos ──
    ENROLL_CHALLENGE_CANNOT_BE_DUPLICATED = (409, "Ya tienes un reto en curso")
    CHALLENGE_TARGET_TIME_NOT_NULL = (400, "Este tipo de reto necesita una hora objetivo")
    ACTIVE_CHALLENGE_NOT_FOUND = (404, "No tienes ningún reto en curso")
    CHALLENGE_NOT_FOUND = (404, "Reto no encontrado")
    HISTORY_ALREADY_POSTED = (409, "Ya registraste el reto hoy")

    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message


class BusinessLogicException(Exception):
    """Error de negocio con un código enumerado"""

    def __init__(self, code: ExceptionCode):
        super().__init__(code.message)
        self.code = code

    @property
    def status(self) -> int:
        return self.code.status
