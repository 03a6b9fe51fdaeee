# fleetadmin/core/auth.py

import logging
from typing import Optional, Dict, Any, Annotated

from fastapi import Depends, Header, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from pydantic import ValidationError as PydanticValidationError

from fleetadmin.api.deps import get_record_store
from fleetadmin.api.models.user import CallerIdentity
from fleetadmin.core import config
from fleetadmin.core.errors import AuthContextError
from fleetadmin.core.store import RecordStore
from fleetadmin.core.supabase_client import get_supabase
from fleetadmin.schemas.reminders import UserRef

logger = logging.getLogger(__name__)

# Bearer para integrarse con Swagger Authorize
_bearer = HTTPBearer(auto_error=False)


# -------------------------
# Helpers
# -------------------------
def _decode_jwt_hs256(token: str) -> Dict[str, Any]:
    # 1) Verifica header
    try:
        header = jwt.get_unverified_header(token)
        alg = header.get("alg")
    except jwt.PyJWTError as e:
        raise AuthContextError(f"[JWT] Invalid header: {e}")

    if alg != "HS256":
        raise AuthContextError(f"[HS256-mode] Token alg={alg}. A HS256 session token is required.")

    if not config.SUPABASE_JWT_SECRET:
        raise AuthContextError("[HS256] SUPABASE_JWT_SECRET not configured")

    # 2) Lee payload sin firma para extraer iss si existe
    try:
        unverified = jwt.decode(
            token,
            options={"verify_signature": False, "verify_aud": False, "verify_iss": False}
        )
        token_iss = unverified.get("iss")
    except jwt.PyJWTError as e:
        raise AuthContextError(f"[JWT] Cannot read unverified payload: {e}")

    # 3) Valida firma/claims con HS256
    try:
        return jwt.decode(
            token,
            config.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=config.SUPABASE_AUD,
            issuer=token_iss or f"{config.SUPABASE_URL}/auth/v1",
            options={"require": ["exp", "sub"]},
        )
    except jwt.PyJWTError as e:
        raise AuthContextError(f"[HS256] Invalid token: {e}")


def _email_from_auth(token: str) -> Optional[str]:
    # Email real desde Supabase Auth cuando el token no lo trae
    try:
        res = get_supabase().auth.get_user(token)
        user = res.user
        return getattr(user, "email", None) or (getattr(user, "user_metadata", {}) or {}).get("email")
    except Exception as e:
        logger.debug("auth: could not read email from supabase auth (%s)", e)
        return None


def _profile_for(store: RecordStore, email: Optional[str]) -> Optional[UserRef]:
    if not email:
        return None
    row = store.find_user_profile_by_email(email)
    return UserRef.model_validate(row) if row else None


def _identity(user_id: str, email: Optional[str], profile: Optional[UserRef]) -> CallerIdentity:
    try:
        return CallerIdentity(user_id=user_id, email=email, profile=profile)
    except PydanticValidationError:
        raise AuthContextError(f"Invalid caller email: {email!r}")


# -------------------------
# Dependencias públicas (para routers)
# -------------------------
def get_caller_identity(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Security(_bearer)],
    store: RecordStore = Depends(get_record_store),
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    x_user_email: Optional[str] = Header(default=None, alias="X-User-Email"),
) -> Optional[CallerIdentity]:
    """
    Identidad del que llama.
    - Sin token: None (sin sesión).
    - Token inválido: AuthContextError.
    - Token válido sin user-profile: CallerIdentity con profile=None.
    - En DEV, permite X-User-Id / X-User-Email cuando ALLOW_DEV_HEADER=1.
    """
    if config.ALLOW_DEV_HEADER and x_user_id:
        return _identity(x_user_id, x_user_email, _profile_for(store, x_user_email))

    if not credentials or credentials.scheme.lower() != "bearer":
        return None

    token = credentials.credentials
    payload = _decode_jwt_hs256(token)
    user_id = payload.get("sub")
    if not user_id:
        raise AuthContextError("Token payload missing 'sub'")

    email = payload.get("email") or _email_from_auth(token)
    profile = _profile_for(store, email)
    if profile is None:
        logger.info("auth: session %s has no user profile", user_id)
    return _identity(user_id, email, profile)
