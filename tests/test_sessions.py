"""
Tests for upload sessions: form data merging, file records and lifecycle.
"""
import pytest
import pytest_asyncio

from secure_upload.core.exceptions import NotFoundException, ValidationException
from secure_upload.models.session import SessionStatus
from secure_upload.models.template import FieldType
from secure_upload.schemas.link import UploadLinkCreate
from secure_upload.schemas.session import NewUploadedFile
from secure_upload.schemas.template import FormFieldCreate, FormTemplateCreate


@pytest_asyncio.fixture
async def links(template_service, link_service, recruiter):
    """Ids of two links on one template."""
    template = await template_service.create_template(
        FormTemplateCreate(
            name="Onboarding",
            fields=[FormFieldCreate(field_name="full_name", field_type=FieldType.TEXT, field_label="Full Name")],
        ),
        recruiter,
    )
    ids = []
    for job_number in ("JOB-1", "JOB-2"):
        link = await link_service.create_link(
            UploadLinkCreate(job_number=job_number, form_template_id=template.id), recruiter
        )
        ids.append(link.id)
    return ids


def _file(field_name: str = "id_document") -> NewUploadedFile:
    return NewUploadedFile(
        field_name=field_name,
        original_name="license.pdf",
        stored_name="0f1e2d.pdf",
        file_path="/tmp/uploads/0f1e2d.pdf",
        mime_type="application/pdf",
        file_size=1024,
        document_type="drivers_license",
    )


class TestSessionLifecycle:
    """Test session creation and state transitions"""

    @pytest.mark.asyncio
    async def test_create_session(self, session_service, links):
        session = await session_service.create_session(links[0], client_ip="10.0.0.1", user_agent="pytest")

        assert session.status == SessionStatus.IN_PROGRESS
        assert session.form_data == {}
        assert session.uploaded_files == []
        assert session.submitted_at is None
        assert session.client_ip == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_complete_sets_submitted_at(self, session_service, links):
        session = await session_service.create_session(links[0])

        completed = await session_service.complete_session(session.id)

        assert completed.status == SessionStatus.COMPLETED
        assert completed.submitted_at is not None

    @pytest.mark.asyncio
    async def test_terminal_states_are_final(self, session_service, links):
        """Completed and failed sessions accept no further changes"""
        done = await session_service.create_session(links[0])
        await session_service.complete_session(done.id)
        failed = await session_service.create_session(links[0])
        await session_service.fail_session(failed.id, reason="disk full")

        for session_id in (done.id, failed.id):
            with pytest.raises(ValidationException):
                await session_service.update_session_data(session_id, {"a": 1})
            with pytest.raises(ValidationException):
                await session_service.complete_session(session_id)
            with pytest.raises(ValidationException):
                await session_service.fail_session(session_id)

        assert (await session_service.get_session(failed.id)).status == SessionStatus.FAILED

    @pytest.mark.asyncio
    async def test_unknown_session(self, session_service, links):
        with pytest.raises(NotFoundException):
            await session_service.get_session("missing")
        with pytest.raises(NotFoundException):
            await session_service.delete_session("missing")


class TestFormData:
    """Test shallow merging of saved form data"""

    @pytest.mark.asyncio
    async def test_merge_overwrites_and_adds(self, session_service, links):
        session = await session_service.create_session(links[0])

        await session_service.update_session_data(session.id, {"a": 1})
        merged = await session_service.update_session_data(session.id, {"a": 2, "b": 3})

        assert merged.form_data == {"a": 2, "b": 3}
        assert (await session_service.get_session(session.id)).form_data == {"a": 2, "b": 3}

    @pytest.mark.asyncio
    async def test_merge_is_shallow(self, session_service, links):
        session = await session_service.create_session(links[0])

        await session_service.update_session_data(session.id, {"address": {"city": "Austin", "zip": "73301"}})
        merged = await session_service.update_session_data(session.id, {"address": {"city": "Dallas"}})

        assert merged.form_data == {"address": {"city": "Dallas"}}


class TestSessionFiles:
    """Test file records owned by a session"""

    @pytest.mark.asyncio
    async def test_add_and_get_file(self, session_service, links):
        session = await session_service.create_session(links[0])

        added = await session_service.add_file_to_session(session.id, _file())

        fetched = await session_service.get_file(added.id)
        assert fetched.session_id == session.id
        assert fetched.original_name == "license.pdf"
        assert [f.id for f in (await session_service.get_session(session.id)).uploaded_files] == [added.id]

    @pytest.mark.asyncio
    async def test_add_file_to_unknown_session(self, session_service, links):
        with pytest.raises(NotFoundException):
            await session_service.add_file_to_session("missing", _file())

    @pytest.mark.asyncio
    async def test_delete_session_removes_files(self, session_service, links):
        """After a session is deleted its files can no longer be looked up"""
        session = await session_service.create_session(links[0])
        first = await session_service.add_file_to_session(session.id, _file("id_document"))
        second = await session_service.add_file_to_session(session.id, _file("proof_of_address"))

        removed = await session_service.delete_session(session.id)

        assert {f.id for f in removed} == {first.id, second.id}
        for file_id in (first.id, second.id):
            with pytest.raises(NotFoundException):
                await session_service.get_file(file_id)
        with pytest.raises(NotFoundException):
            await session_service.get_session(session.id)

    @pytest.mark.asyncio
    async def test_list_sessions_for_link(self, session_service, links):
        await session_service.create_session(links[0])
        await session_service.create_session(links[0])
        await session_service.create_session(links[1])

        assert len(await session_service.list_sessions_for_link(links[0])) == 2
        assert len(await session_service.list_all_sessions()) == 3
