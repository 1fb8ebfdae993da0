from fastapi import APIRouter
from secure_upload.api.v1.endpoints import templates, links, sessions

api_router = APIRouter()

api_router.include_router(templates.router, prefix="/form-templates", tags=["form-templates"])
api_router.include_router(links.router, prefix="/upload-links", tags=["upload-links"])
api_router.include_router(sessions.router, prefix="/upload-sessions", tags=["upload-sessions"])
