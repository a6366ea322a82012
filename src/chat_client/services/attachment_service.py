from __future__ import annotations

import mimetypes
from pathlib import PurePath

from chat_client.application.exceptions import ValidationError
from chat_client.application.ports.transport import ChatTransport
from chat_client.domain.entities.attachment import Attachment
from chat_client.domain.value_objects.ids import MessageId

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


async def upload_attachment(
    message_id: MessageId,
    file_name: str,
    content: bytes,
    transport: ChatTransport,
    content_type: str | None = None,
) -> Attachment:
    """Upload ``content`` and associate it with an already-delivered message."""
    if message_id.startswith("local-"):
        raise ValidationError("Attachments need a delivered message")
    name = PurePath(file_name).name
    if not name:
        raise ValidationError("File name is required")
    if not content:
        raise ValidationError("File is empty")
    if len(content) > MAX_UPLOAD_BYTES:
        raise ValidationError(f"File exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit")

    if content_type is None:
        content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
    return await transport.files.upload(message_id, name, content, content_type)


async def download_attachment(attachment: Attachment | str, transport: ChatTransport) -> bytes:
    file_name = attachment if isinstance(attachment, str) else attachment.file_url
    file_name = file_name.rsplit("/", 1)[-1]
    if not file_name:
        raise ValidationError("Attachment has no file name")
    return await transport.files.download(file_name)


async def list_attachments(message_id: MessageId, transport: ChatTransport) -> list[Attachment]:
    return await transport.files.list_for_message(message_id)


async def delete_attachment(attachment_id: str, transport: ChatTransport) -> None:
    await transport.files.delete(attachment_id)
