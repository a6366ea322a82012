from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from chat_client.domain.value_objects.ids import MessageId


@dataclass(frozen=True, slots=True)
class Attachment:
    id: str
    message_id: MessageId
    file_name: str
    file_url: str
    file_type: str | None
    file_size: int | None
    uploaded_at: datetime | None
