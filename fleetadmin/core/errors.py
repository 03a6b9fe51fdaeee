# fleetadmin/core/errors.py

from typing import Any, Dict, Optional

import httpx
from fastapi import Request, status
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError

# Códigos de PostgREST/Postgres que indican que la forma de la consulta no está
# soportada por este despliegue (RPC inexistente, columna no filtrable, etc.)
UNSUPPORTED_QUERY_CODES = {"PGRST100", "PGRST202", "PGRST204", "42703", "42883"}
METHOD_NOT_ALLOWED_CODES = {"405", "PGRST105"}

GENERIC_MESSAGES: Dict[int, str] = {
    400: "Invalid request",
    401: "Authentication required",
    403: "Forbidden",
    404: "Reminder not found",
    405: "Operation not supported by the backend",
    409: "Conflict",
    500: "Internal server error",
    502: "Unexpected backend error",
    503: "Backend unavailable, try again later",
}


class ReminderEngineError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or GENERIC_MESSAGES.get(self.status_code, "Unknown error"))

    @property
    def message(self) -> str:
        return str(self.args[0])


class ValidationError(ReminderEngineError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthContextError(ReminderEngineError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(ReminderEngineError):
    status_code = status.HTTP_404_NOT_FOUND


class MethodNotSupportedError(ReminderEngineError):
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED


class TransientConnectivityError(ReminderEngineError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class UnknownBackendError(ReminderEngineError):
    status_code = status.HTTP_502_BAD_GATEWAY


class UnsupportedQueryError(ReminderEngineError):
    """
    El backend no soporta la forma de la consulta (p.ej. RPC no creado).
    Solo lo usa el resolver para pasar a la siguiente estrategia; nunca sale al cliente.
    """
    status_code = status.HTTP_400_BAD_REQUEST


_BY_STATUS = {
    400: ValidationError,
    401: AuthContextError,
    403: AuthContextError,
    404: NotFoundError,
    405: MethodNotSupportedError,
    502: UnknownBackendError,
    503: TransientConnectivityError,
}


def from_backend_exception(exc: Exception, context: str = "") -> ReminderEngineError:
    """Traduce errores de supabase/httpx a la taxonomía del motor."""
    prefix = f"[{context}] " if context else ""
    if isinstance(exc, ReminderEngineError):
        return exc
    if isinstance(exc, httpx.TransportError):
        return TransientConnectivityError(f"{prefix}Cannot reach the data service: {exc}")
    if isinstance(exc, APIError):
        code = str(exc.code or "")
        message = exc.message or str(exc)
        if code in UNSUPPORTED_QUERY_CODES:
            return UnsupportedQueryError(f"{prefix}{message}")
        if code in METHOD_NOT_ALLOWED_CODES:
            return MethodNotSupportedError(f"{prefix}{message}")
        return UnknownBackendError(f"{prefix}{message}")
    return UnknownBackendError(f"{prefix}{exc}")


def error_from_status(status_code: int, payload: Any = None) -> ReminderEngineError:
    """
    Reconstruye el error a partir de una respuesta HTTP no-2xx.
    Usa el mensaje del payload si existe; si no, uno genérico según el status.
    """
    message = None
    if isinstance(payload, dict):
        message = payload.get("detail") or payload.get("error") or payload.get("message")
        if isinstance(message, dict):
            message = message.get("message")
        if message is not None and not isinstance(message, str):
            message = str(message)
    elif isinstance(payload, str) and payload.strip():
        message = payload.strip()

    if status_code in _BY_STATUS:
        cls = _BY_STATUS[status_code]
    elif status_code == 422:
        cls = ValidationError
    else:
        cls = UnknownBackendError
    return cls(message or GENERIC_MESSAGES.get(status_code, f"Error {status_code}"))


async def reminder_engine_exception_handler(request: Request, exc: ReminderEngineError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
