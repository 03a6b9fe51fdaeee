# fleetadmin/core/config.py

import os
from typing import List

# Cargar .env si existe (útil en VSCode / procesos que no heredan entorno)
from dotenv import load_dotenv

load_dotenv()

# -------------------------
# Supabase / Auth
# -------------------------
SUPABASE_URL = os.getenv("SUPABASE_URL", "").rstrip("/")
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
SUPABASE_AUD = os.getenv("SUPABASE_AUD", "authenticated")
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "")  # Legacy JWT secret (HMAC)
ALLOW_DEV_HEADER = os.getenv("ALLOW_DEV_HEADER", "0") == "1"

CORS_ORIGINS: List[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# -------------------------
# Tablas
# -------------------------
REMINDERS_TABLE = "notifications"
VEHICLES_TABLE = "fleets"
USER_PROFILES_TABLE = "user_profiles"
REMINDER_BY_DOCUMENT_ID_RPC = "reminder_by_document_id"

# -------------------------
# Resolución de identificadores
# -------------------------
# Escaneo paginado de último recurso: page_size * max_pages filas como máximo
RESOLVER_PAGE_SIZE = int(os.getenv("RESOLVER_PAGE_SIZE", "250"))
RESOLVER_MAX_PAGES = int(os.getenv("RESOLVER_MAX_PAGES", "20"))

# Búsqueda amplia cuando el filtro por vehículo no devuelve nada
LIST_FALLBACK_PAGE_SIZE = int(os.getenv("LIST_FALLBACK_PAGE_SIZE", "100"))

# -------------------------
# Sincronización cliente
# -------------------------
SYNC_SETTLE_DELAY_SECONDS = int(os.getenv("SYNC_SETTLE_DELAY_MS", "300")) / 1000.0

# -------------------------
# Recordatorio de mantenimiento
# -------------------------
MAINTENANCE_TITLE_KEYWORDS: List[str] = [
    k.strip().lower()
    for k in os.getenv("MAINTENANCE_TITLE_KEYWORDS", "mantenimiento,maintenance").split(",")
    if k.strip()
]
