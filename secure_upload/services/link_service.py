import logging
import uuid
from datetime import timedelta
from typing import List, Optional

from secure_upload.config import settings
from secure_upload.core.access import is_elevated, require_access
from secure_upload.core.clock import to_naive_utc, utcnow
from secure_upload.core.exceptions import ConflictException, NotFoundException, ValidationException
from secure_upload.core.logging_utils import sanitize_log_message
from secure_upload.models.link import LinkStatus
from secure_upload.repositories.base import LinkRepository, SessionRepository, TemplateRepository
from secure_upload.schemas.auth import CurrentUser
from secure_upload.schemas.link import (
    DashboardStats,
    LinkInvalidReason,
    LinkValidation,
    UploadLink,
    UploadLinkCreate,
    UploadLinkUpdate,
)
from secure_upload.schemas.session import UploadedFile

logger = logging.getLogger(__name__)

INVALID_MESSAGES = {
    LinkInvalidReason.NOT_FOUND: "Link not found",
    LinkInvalidReason.NOT_ACTIVE: "Link is not active",
    LinkInvalidReason.EXPIRED: "Link has expired",
}


class LinkService:
    """Upload links: creation, ownership-gated management and public validation."""

    def __init__(
        self,
        links: LinkRepository,
        templates: TemplateRepository,
        sessions: SessionRepository
    ):
        self.links = links
        self.templates = templates
        self.sessions = sessions

    @staticmethod
    def _owner_filter(caller: CurrentUser) -> Optional[str]:
        return None if is_elevated(caller) else caller.id

    async def list_links(self, caller: CurrentUser) -> List[UploadLink]:
        """Links visible to the caller, newest first."""
        return await self.links.list(created_by=self._owner_filter(caller))

    async def get_link(self, link_id: str, caller: CurrentUser) -> UploadLink:
        """
        Get a link by id.

        Raises:
            NotFoundException: unknown id
            AccessDeniedException: caller is neither elevated nor the creator
        """
        link = await self.links.get(link_id)
        if link is None:
            raise NotFoundException(detail="Link not found")
        require_access(caller, link.created_by, detail="Access denied to this link")
        return link

    async def create_link(
        self,
        data: UploadLinkCreate,
        caller: CurrentUser,
        request_id: Optional[str] = None
    ) -> UploadLink:
        """
        Create an upload link for a job number.

        The duplicate check here is best-effort; the store's unique
        constraint on job_number settles concurrent creations.

        Raises:
            ValidationException: blank job number, inactive template or past expiry
            NotFoundException: template does not exist
            ConflictException: job number already has a link
        """
        job_number = (data.job_number or "").strip()
        if not job_number:
            raise ValidationException(detail="Job number is required")

        if await self.links.get_by_job_number(job_number) is not None:
            raise ConflictException(detail="A link for this job number already exists")

        template = await self.templates.get(data.form_template_id)
        if template is None:
            raise NotFoundException(detail="Template not found")
        if not template.is_active:
            raise ValidationException(detail="Template is not active")

        now = utcnow()
        expires_at = to_naive_utc(data.expires_at) or now + timedelta(days=settings.LINK_DEFAULT_EXPIRATION_DAYS)
        if expires_at <= now:
            raise ValidationException(detail="Expiry must be in the future")

        link = await self.links.add(
            UploadLink(
                id=str(uuid.uuid4()),
                job_number=job_number,
                form_template_id=template.id,
                created_by=caller.id,
                status=LinkStatus.ACTIVE,
                expires_at=expires_at,
                client_email=data.client_email,
                created_at=now,
                updated_at=now,
            )
        )

        logger.info(
            sanitize_log_message(
                "Upload link created",
                RequestID=request_id,
                LinkID=link.id,
                JobNumber=link.job_number,
                TemplateID=link.form_template_id,
                ExpiresAt=link.expires_at.isoformat(),
                client_email=link.client_email,
            )
        )
        return link

    async def update_link(
        self,
        link_id: str,
        patch: UploadLinkUpdate,
        caller: CurrentUser,
        request_id: Optional[str] = None
    ) -> UploadLink:
        """Patch status, expiry or client e-mail."""
        await self.get_link(link_id, caller)

        changes = patch.model_dump(exclude_unset=True)
        if changes.get("status") is None:
            changes.pop("status", None)
        if "expires_at" in changes:
            if changes["expires_at"] is None:
                raise ValidationException(detail="Expiry cannot be removed")
            changes["expires_at"] = to_naive_utc(changes["expires_at"])
        changes["updated_at"] = utcnow()

        updated = await self.links.update(link_id, changes)
        if updated is None:
            raise NotFoundException(detail="Link not found")

        logger.info(
            sanitize_log_message(
                "Upload link updated",
                RequestID=request_id,
                LinkID=link_id,
                Status=updated.status.value,
            )
        )
        return updated

    async def delete_link(
        self,
        link_id: str,
        caller: CurrentUser,
        request_id: Optional[str] = None
    ) -> List[UploadedFile]:
        """
        Hard-delete a link and the sessions opened against it.

        Returns:
            File records removed with those sessions, for on-disk cleanup
        """
        link = await self.get_link(link_id, caller)
        require_access(caller, link.created_by, detail="Only the creator or an elevated role may delete this link")

        removed_files: List[UploadedFile] = []
        for session in await self.sessions.list_for_link(link_id):
            removed_files.extend(await self.sessions.delete(session.id) or [])

        if not await self.links.delete(link_id):
            raise NotFoundException(detail="Link not found")

        logger.info(
            sanitize_log_message(
                "Upload link deleted",
                RequestID=request_id,
                LinkID=link_id,
                JobNumber=link.job_number,
                RemovedFiles=len(removed_files),
            )
        )
        return removed_files

    async def validate_link(self, link_id: str, request_id: Optional[str] = None) -> LinkValidation:
        """
        Check whether a link can accept submissions.

        This read has a side effect: an active link whose expiry has passed
        is persisted as ``expired`` before the result is returned, so
        dashboard counts reflect it from then on.
        """
        link = await self.links.get(link_id)
        if link is None:
            return LinkValidation(
                is_valid=False,
                reason=LinkInvalidReason.NOT_FOUND,
                message=INVALID_MESSAGES[LinkInvalidReason.NOT_FOUND],
            )

        if link.status != LinkStatus.ACTIVE:
            return LinkValidation(
                is_valid=False,
                link=link,
                reason=LinkInvalidReason.NOT_ACTIVE,
                message=INVALID_MESSAGES[LinkInvalidReason.NOT_ACTIVE],
            )

        now = utcnow()
        if link.expires_at < now:
            link = await self.links.update(link_id, {"status": LinkStatus.EXPIRED, "updated_at": now}) or link
            logger.info(
                sanitize_log_message("Upload link expired on validation", RequestID=request_id, LinkID=link_id)
            )
            return LinkValidation(
                is_valid=False,
                link=link,
                reason=LinkInvalidReason.EXPIRED,
                message=INVALID_MESSAGES[LinkInvalidReason.EXPIRED],
            )

        return LinkValidation(is_valid=True, link=link)

    async def count_active_links(self, caller: CurrentUser) -> int:
        return await self.links.count_active(created_by=self._owner_filter(caller))

    async def expiring_links(self, caller: CurrentUser, days: int) -> List[UploadLink]:
        """
        Active links expiring within ``days`` from now, inclusive.

        Active links already past their expiry but not yet validated are
        included as well.
        """
        threshold = utcnow() + timedelta(days=days)
        return await self.links.list_expiring(threshold, created_by=self._owner_filter(caller))

    async def dashboard_stats(self, caller: CurrentUser) -> DashboardStats:
        expiring = await self.expiring_links(caller, settings.LINK_EXPIRING_SOON_DAYS)
        return DashboardStats(
            active_links_count=await self.count_active_links(caller),
            expiring_links_count=len(expiring),
            expiring_links=expiring,
        )
