from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import tracker.models  # noqa: F401  registers every table on Base.metadata
from tracker.core.logging import setup_logging
from tracker.core.settings import settings
from tracker.api.router import router
from tracker.db.session import engine
from tracker.db.base import Base

setup_logging(settings.log_level, settings.log_structured)

app = FastAPI(title="Creator Tracker Backend", version="0.1.0")

origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Base.metadata.create_all(bind=engine)

app.include_router(router)
