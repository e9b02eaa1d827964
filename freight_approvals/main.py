import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from freight_approvals.config import get_settings
from freight_approvals.database import SessionLocal
from freight_approvals.routers import api_router
from freight_approvals.services import approval_handlers  # noqa: F401  registers execution handlers
from freight_approvals.services.role_hierarchy import load_role_hierarchy

settings = get_settings()
log_level_name = (settings.log_level or "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
logging.getLogger("freight_approvals").setLevel(log_level)

app = FastAPI(title=settings.app_name)

logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix="/api")


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, str]:
    return {"status": "ok"}


@app.on_event("startup")
async def load_roles() -> None:
    db = SessionLocal()
    try:
        hierarchy = load_role_hierarchy(db)
        logger.info("Role hierarchy ready with %d roles", len(hierarchy.codes()))
    finally:
        db.close()
