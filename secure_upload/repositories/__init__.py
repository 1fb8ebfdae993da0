"""Storage backings for templates, links, sessions and the access log."""
from secure_upload.repositories.base import (
    AccessLogRepository,
    LinkRepository,
    SessionRepository,
    Store,
    TemplateRepository,
)

__all__ = [
    "AccessLogRepository",
    "LinkRepository",
    "SessionRepository",
    "Store",
    "TemplateRepository",
]
