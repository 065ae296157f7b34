"""
=============================================================================
MAIN.PY — La API de Cactus Village
=============================================================================
Este archivo define TODOS los endpoints de la API REST.

Organización por secciones:
  1. AUTH        → Registro, login, logout, renovar token
  2. MEMBERS     → Mi info, editar perfil, baja, recuperar contraseña
  3. CHALLENGES  → Apuntarse, borrar, registro diario, historial
  4. EXTRAS      → Mensaje de riego, ranking, aviso visto

Los endpoints NO contienen lógica de negocio: validan la entrada,
llaman al servicio (members.py / challenges.py) y envuelven la
respuesta en {"data": ...}.
"""

import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional, Union

from fastapi import FastAPI, Depends, Query, Request, Response, Cookie, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from auth import (
    REFRESH_COOKIE, get_current_member, utc_now, set_token_cookies, set_access_cookie,
    delete_token_cookies
)
from challenges import ChallengeService
from config import CORS_ORIGINS
from database import init_db
from dependencies import get_member_service, get_challenge_service
from exceptions import BusinessLogicException
from members import MemberService
from models import Member, ChallengeType
from schemas import (
    SingleResponse, SignupRequest, LoginRequest, EditRequest, RecoveryRequest,
    MemberInfo, EditResponse, EnrollRequest, EnrollResponse, HistoryRequest,
    HistoryInfo, AllInfo, ActiveInfo, WateringResponse, RankingResponse
)

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("cactus.api")


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN (Arranque y apagado)
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Al arrancar: crear las tablas si no existen"""
    logger.info("🚀 Arrancando Cactus Village...")
    init_db()
    logger.info("✅ Base de datos inicializada")

    yield

    logger.info("👋 Apagado completo")


# ─────────────────────────────────────────────────────────────────────────────
# APLICACIÓN FASTAPI
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Cactus Village API",
    description="Haz crecer tu cactus completando retos diarios",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# MANEJO DE ERRORES
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(BusinessLogicException)
async def business_exception_handler(request: Request, exc: BusinessLogicException):
    """Error de negocio → status HTTP del código + JSON con el detalle"""
    return JSONResponse(
        status_code=exc.status,
        content={
            "status": exc.status,
            "code": exc.code.name,
            "message": exc.code.message,
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Captura errores no manejados y devuelve detalles útiles"""
    logger.error(f"❌ Error no manejado en {request.url}: {exc}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={
            "status": 500,
            "code": "INTERNAL_SERVER_ERROR",
            "message": str(exc),
        }
    )


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
def health_check():
    """Verifica que la API está viva"""
    return {
        "status": "ok",
        "app": "Cactus Village",
        "version": "1.0.0",
        "timestamp": utc_now().isoformat()
    }


# =============================================================================
# ===================== SECCIÓN 1: AUTH =======================================
# =============================================================================

@app.post("/api/auth/signup", status_code=status.HTTP_201_CREATED, tags=["Auth"])
def signup(data: SignupRequest, service: MemberService = Depends(get_member_service)):
    """Registra un usuario con email + contraseña"""
    service.signup(data.email, data.password, data.username)
    return Response(status_code=status.HTTP_201_CREATED)


@app.post("/api/auth/login", response_model=SingleResponse[MemberInfo], tags=["Auth"])
def login(data: LoginRequest, response: Response,
          service: MemberService = Depends(get_member_service)):
    """Inicia sesión: devuelve "mi info" y deja los tokens en cookies"""
    result = service.login(data.email, data.password)
    set_token_cookies(response, result.access_token, result.refresh_token)
    return {"data": result.member_info}


@app.post("/api/auth/logout", status_code=status.HTTP_204_NO_CONTENT, tags=["Auth"])
def logout(refresh_token: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
           service: MemberService = Depends(get_member_service)):
    service.logout(refresh_token)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    delete_token_cookies(response)
    return response


@app.post("/api/auth/reissue", tags=["Auth"])
def reissue(refresh_token: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
            service: MemberService = Depends(get_member_service)):
    """Nuevo token de acceso a partir de la cookie refresh_token"""
    access_token = service.reissue(refresh_token)
    response = Response(status_code=status.HTTP_200_OK)
    set_access_cookie(response, access_token)
    return response


# =============================================================================
# ===================== SECCIÓN 2: MEMBERS ====================================
# =============================================================================

@app.get("/api/members/me", response_model=SingleResponse[MemberInfo], tags=["Members"])
def get_member_info(member: Member = Depends(get_current_member),
                    service: MemberService = Depends(get_member_service)):
    return {"data": service.build_member_summary(member)}


@app.patch("/api/members/me", response_model=SingleResponse[EditResponse], tags=["Members"])
def edit_member(data: EditRequest, member: Member = Depends(get_current_member),
                service: MemberService = Depends(get_member_service)):
    """Cambia username (y contraseña si el usuario tiene contraseña propia)"""
    return {"data": service.edit_member(member, data.username, data.pre_password, data.new_password)}


@app.delete("/api/members/me", status_code=status.HTTP_204_NO_CONTENT, tags=["Members"])
def delete_member(member: Member = Depends(get_current_member),
                  service: MemberService = Depends(get_member_service)):
    """Baja de la cuenta (anonimiza los datos y cierra la sesión)"""
    service.delete_member(member)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    delete_token_cookies(response)
    return response


@app.post("/api/members/recovery", status_code=status.HTTP_204_NO_CONTENT, tags=["Members"])
def recover_password(data: RecoveryRequest,
                     service: MemberService = Depends(get_member_service)):
    """Envía una contraseña temporal al email"""
    service.recover_password(data.email, data.username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# ===================== SECCIÓN 3: CHALLENGES =================================
# =============================================================================

@app.post("/api/challenges", response_model=SingleResponse[EnrollResponse],
          status_code=status.HTTP_201_CREATED, tags=["Challenges"])
def enroll_challenge(data: EnrollRequest, type: ChallengeType = Query(...),
                     member: Member = Depends(get_current_member),
                     service: ChallengeService = Depends(get_challenge_service)):
    """
    Se apunta a un reto.
      POST /api/challenges?type=water  {"targetDate": 30, "targetTime": "08:00"}
      POST /api/challenges?type=thanks {"targetDate": 7}
    """
    return {"data": service.enroll(member, type, data.target_date, data.target_time)}


@app.delete("/api/challenges", status_code=status.HTTP_204_NO_CONTENT, tags=["Challenges"])
def delete_challenge(member: Member = Depends(get_current_member),
                     service: ChallengeService = Depends(get_challenge_service)):
    service.delete(member)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/api/challenges", response_model=SingleResponse[Union[AllInfo, ActiveInfo]],
         tags=["Challenges"])
def get_challenge_records(active: Optional[str] = Query(default=None),
                          member: Member = Depends(get_current_member),
                          service: ChallengeService = Depends(get_challenge_service)):
    """
    Sin parámetros → retos terminados (totalDate, totalChall, challenges)
    ?active=true   → reto en curso (vacío si no hay ninguno)
    """
    return {"data": service.get_records(member, active)}


@app.post("/api/challenges/histories", response_model=SingleResponse[HistoryInfo],
          status_code=status.HTTP_201_CREATED, tags=["Challenges"])
def post_history(data: HistoryRequest, member: Member = Depends(get_current_member),
                 service: ChallengeService = Depends(get_challenge_service)):
    """Registro del día en el reto en curso"""
    return {"data": service.post_history(member, data.contents, data.time)}


# =============================================================================
# ===================== SECCIÓN 4: EXTRAS =====================================
# =============================================================================

@app.get("/api/challenges/message", response_model=SingleResponse[WateringResponse],
         tags=["Challenges"])
def get_message(member: Member = Depends(get_current_member),
                service: ChallengeService = Depends(get_challenge_service)):
    """Mensaje aleatorio al regar el cactus"""
    return {"data": service.get_message(member)}


@app.get("/api/challenges/ranking", response_model=SingleResponse[RankingResponse],
         tags=["Challenges"])
def get_ranking(member: Member = Depends(get_current_member),
                service: ChallengeService = Depends(get_challenge_service)):
    return {"data": service.get_ranking(member)}


@app.patch("/api/challenges/notification", tags=["Challenges"])
def set_notification_status(member: Member = Depends(get_current_member),
                            service: ChallengeService = Depends(get_challenge_service)):
    """El usuario ya vio el aviso de fin de su último reto"""
    service.set_notified(member)
    return Response(status_code=status.HTTP_200_OK)
