# main.py
"""
Application entrypoint for `uvicorn main:app`.
"""
from group_formation.main import app  # noqa: F401
