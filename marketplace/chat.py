"""Messages and shared files scoped to a hire."""
from __future__ import annotations

from pathlib import Path

from sqlalchemy.orm import joinedload
from werkzeug.datastructures import FileStorage

from . import policy
from .errors import InvalidInput, NotFound, PersistenceError, Unauthorized, ValidationError
from .extensions import db, transaction
from .models import Hire, Message, SharedFile
from .policy import Actor
from .storage import LocalFileStore

ALLOWED_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "image/jpeg",
        "image/png",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)
MAX_FILE_SIZE = 15 * 1024 * 1024


def _load_hire(hire_id: int, for_update: bool = False) -> Hire:
    hire = db.session.get(
        Hire,
        hire_id,
        options=[joinedload(Hire.service)],
        populate_existing=for_update,
        with_for_update=for_update or None,
    )
    if hire is None:
        raise NotFound("Hire not found")
    return hire


def _require_read(hire: Hire, requester: Actor) -> None:
    if not policy.can_access_chat(hire, requester):
        raise Unauthorized("You do not have access to this hire's chat")


def _require_write(hire: Hire, requester: Actor) -> None:
    if not policy.can_write_chat_or_file(hire, requester):
        raise Unauthorized("This hire is closed or you are not a participant")


def post_message(hire_id: int, sender: Actor, text: str | None) -> int:
    body = text.strip() if isinstance(text, str) else ""
    if not body:
        raise InvalidInput("Message text cannot be empty")

    with transaction() as session:
        hire = _load_hire(hire_id, for_update=True)
        _require_write(hire, sender)
        message = Message(hire_id=hire.hire_id, sender_id=sender.user_id, body=body)
        session.add(message)
        session.flush()
        return message.message_id


def list_messages(hire_id: int, requester: Actor) -> list[Message]:
    hire = _load_hire(hire_id)
    _require_read(hire, requester)
    return (
        Message.query.options(joinedload(Message.sender))
        .filter(Message.hire_id == hire_id)
        .order_by(Message.sent_at.asc(), Message.message_id.asc())
        .all()
    )


def file_url(shared: SharedFile) -> str:
    return f"/hires/{shared.hire_id}/files/{shared.file_id}"


def upload_file(
    hire_id: int,
    uploader: Actor,
    upload: FileStorage,
    store: LocalFileStore,
) -> dict[str, object]:
    """Store an uploaded document and record it against the hire.

    The bytes are written first. The hire is re-read before the metadata row
    is inserted; when it has closed meanwhile, or the row cannot be recorded,
    the stored file is removed again.
    """
    hire = _load_hire(hire_id)
    _require_write(hire, uploader)

    original_name = (upload.filename or "").strip()
    mime_type = (upload.mimetype or "").lower()
    if not original_name:
        raise ValidationError("A file is required")
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationError("Only PDF, JPEG, PNG, DOC and DOCX files are allowed")

    key = store.save(hire.hire_id, upload, original_name)
    if store.path(key).stat().st_size > MAX_FILE_SIZE:
        store.delete(key)
        raise ValidationError("Files are limited to 15 MB")

    try:
        with transaction() as session:
            hire = _load_hire(hire_id, for_update=True)
            _require_write(hire, uploader)
            shared = SharedFile(
                hire_id=hire.hire_id,
                uploader_id=uploader.user_id,
                original_name=original_name,
                storage_key=key,
                mime_type=mime_type,
            )
            session.add(shared)
            session.flush()
            result = {
                "id": shared.file_id,
                "name": shared.original_name,
                "url": file_url(shared),
            }
    except (PersistenceError, Unauthorized):
        store.delete(key)
        raise
    return result


def list_files(hire_id: int, requester: Actor) -> list[SharedFile]:
    hire = _load_hire(hire_id)
    _require_read(hire, requester)
    return (
        SharedFile.query.options(joinedload(SharedFile.uploader))
        .filter(SharedFile.hire_id == hire_id, SharedFile.is_deleted.is_(False))
        .order_by(SharedFile.uploaded_at.desc(), SharedFile.file_id.desc())
        .all()
    )


def _load_file(hire_id: int, file_id: int) -> SharedFile:
    shared = db.session.get(SharedFile, file_id)
    if shared is None or shared.hire_id != hire_id or shared.is_deleted:
        raise NotFound("File not found")
    return shared


def open_file(
    hire_id: int, file_id: int, requester: Actor, store: LocalFileStore
) -> tuple[SharedFile, Path]:
    hire = _load_hire(hire_id)
    _require_read(hire, requester)
    shared = _load_file(hire_id, file_id)
    location = store.path(shared.storage_key)
    if not location.is_file():
        raise NotFound("File not found")
    return shared, location


def delete_file(hire_id: int, file_id: int, requester: Actor) -> None:
    """Soft-delete a shared file. Only its uploader may do so."""
    with transaction():
        hire = _load_hire(hire_id)
        _require_read(hire, requester)
        shared = _load_file(hire_id, file_id)
        if shared.uploader_id != requester.user_id:
            raise Unauthorized("Only the uploader can delete this file")
        shared.is_deleted = True
