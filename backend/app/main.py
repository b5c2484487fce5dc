# Flopy CRM backend entrypoint.

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.api import front
from backend.app.core.dev_seed import ensure_default_admin
from backend.app.core.settings import get_settings
from backend.app.db.init_db import init_db
from backend.app.db.session import SessionLocal

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title=settings.app_name, version=settings.app_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(front.router)


@app.on_event("startup")
def prepare_database():
    db = SessionLocal()
    try:
        init_db(db)
        ensure_default_admin(db)
    finally:
        db.close()
