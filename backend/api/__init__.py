"""
Grant Portal API Routers
FastAPI router modules for the grant-record workflow.
"""
from backend.api import admin, applications, health, lois, reviews

__all__ = [
    "admin",
    "applications",
    "health",
    "lois",
    "reviews",
]
