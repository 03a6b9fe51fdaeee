# fleetadmin/core/supabase_client.py

from functools import lru_cache
from typing import Optional

from fastapi import Request
from supabase import create_client, Client

from fleetadmin.core import config


def _require_credentials(key: str) -> None:
    if not config.SUPABASE_URL or not key:
        raise RuntimeError("Faltan SUPABASE_URL/SUPABASE_KEY en .env")


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Cliente base (sin token de usuario).
    Se crea al primer uso para no exigir credenciales al importar.
    """
    _require_credentials(config.SUPABASE_KEY)
    return create_client(config.SUPABASE_URL, config.SUPABASE_KEY)


@lru_cache(maxsize=1)
def get_service_supabase() -> Client:
    """
    Cliente con Service Role (si SUPABASE_SERVICE_ROLE_KEY está configurada).
    Si no está, devuelve el cliente base.
    """
    key = config.SUPABASE_SERVICE_ROLE_KEY
    if key and key != config.SUPABASE_KEY:
        _require_credentials(key)
        return create_client(config.SUPABASE_URL, key)
    return get_supabase()


def _extract_bearer_token(request: Request) -> Optional[str]:
    """
    Extrae 'Bearer <token>' del Authorization header, si existe.
    """
    auth = request.headers.get("Authorization") or request.headers.get("authorization")
    if not auth:
        return None
    parts = auth.split(" ", 1)
    if len(parts) != 2:
        return None
    scheme, token = parts[0], parts[1]
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def get_supabase_for_request(request: Request) -> Client:
    """
    Devuelve un cliente de Supabase autorizado con el token del request
    para que respete RLS. Sin token usa el service role (rutas internas).
    """
    token = _extract_bearer_token(request)
    if not token:
        return get_service_supabase()

    # Clonar un cliente por request evita compartir estado de auth entre peticiones
    _require_credentials(config.SUPABASE_KEY)
    sb = create_client(config.SUPABASE_URL, config.SUPABASE_KEY)
    sb.postgrest.auth(token)
    return sb
