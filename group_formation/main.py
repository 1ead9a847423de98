# group_formation/main.py
"""
Application entrypoint. Includes routers and mounts.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from group_formation.api.routers import assignments
from group_formation.config.settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Capstone Group Formation")

# Basic CORS (adjust origins in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# include routers
app.include_router(assignments.router, prefix="/api/v1/assignments", tags=["assignments"])


@app.get("/")
def index():
    """Health / basic info endpoint."""
    return {"status": "ok", "service": "group-formation", "env": settings.ENV}
