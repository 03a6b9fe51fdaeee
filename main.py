# main.py

from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fleetadmin.core import config
from fleetadmin.core.errors import ReminderEngineError, reminder_engine_exception_handler
from fleetadmin.core.logging_config import setup_logging

# Routers del Fleet Admin
from fleetadmin.api.routers import fleet_reminders, user_profiles


# -------------------------------------------------------------------
# Logging y app base
# -------------------------------------------------------------------
setup_logging()

app = FastAPI(
    title="Fleet Admin Reminders API",
    description="""
Reminder engine for the fleet admin app, backed by Supabase (PostgREST).

**What it does**
- **Reminders per vehicle:** list, create, update, delete, toggle active / completed.
- **References:** every reminder route accepts a numeric `id` or an opaque `document_id`.
- **Occurrences:** mutations on a generated occurrence are applied to its parent reminder.
- **Recurrence:** `next_trigger` is computed for daily / weekly / biweekly / monthly / yearly series.
- **Recipients:** manual users + vehicle responsables + assigned drivers, deduplicated.
- **Maintenance:** maintenance reminders keep `fleets.next_maintenance_date` in sync (best effort, after the response).

**Notes**
- Use the Swagger **Authorize** button to paste your Bearer token (HS256) before creating reminders.
- Errors are returned as `{"detail": "..."}` with 400 / 401 / 404 / 405 / 502 / 503.
""",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ReminderEngineError, reminder_engine_exception_handler)

# -------------------------------------------------------------------
# Routers bajo /api
# -------------------------------------------------------------------
app.include_router(fleet_reminders.router, prefix="/api")
app.include_router(user_profiles.router, prefix="/api")


# -------------------------------------------------------------------
# Endpoints públicos
# -------------------------------------------------------------------
@app.get("/")
def read_root():
    return {"message": "Welcome to Fleet Admin Reminders API"}


@app.get("/health", tags=["Health"])
def health():
    return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}
