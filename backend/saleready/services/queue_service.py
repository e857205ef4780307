"""
Database-backed message queue
Thin wrapper over the queue_send / queue_pop / queue_archive RPC functions
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from saleready.core.database import supabase_service
from saleready.core.exceptions import QueueError

logger = logging.getLogger(__name__)


@dataclass
class QueueMessage:
    """A message read from a queue"""
    msg_id: int
    message: Dict[str, Any] = field(default_factory=dict)
    read_ct: int = 0
    enqueued_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "QueueMessage":
        return cls(
            msg_id=int(row["msg_id"]),
            message=row.get("message") or {},
            read_ct=row.get("read_ct", 0) or 0,
            enqueued_at=row.get("enqueued_at"),
        )


class QueueService:
    """Producer and consumer operations on named queues"""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        return self._client or supabase_service.get_client()

    def _rpc(self, queue_name: str, function: str, params: Dict[str, Any]) -> Any:
        try:
            response = self.client.rpc(function, params).execute()
        except Exception as e:
            logger.error(f"{function} failed for {queue_name}: {e}")
            raise QueueError(queue_name, str(e))
        return response.data

    def send(self, queue_name: str, message: Dict[str, Any]) -> Any:
        """Enqueue one message and return its id"""
        msg_id = self._rpc(queue_name, "queue_send", {"queue_name": queue_name, "message": message})
        logger.info(f"Queued message {msg_id} on {queue_name}")
        return msg_id

    def pop(self, queue_name: str, count: int = 1) -> List[QueueMessage]:
        """Read and remove up to count messages"""
        rows = self._rpc(queue_name, "queue_pop", {"queue_name": queue_name, "count": count}) or []
        return [QueueMessage.from_row(row) for row in rows]

    def archive(self, queue_name: str, msg_id: Any) -> bool:
        """Move a processed message to the queue archive"""
        data = self._rpc(queue_name, "queue_archive", {"queue_name": queue_name, "msg_id": int(msg_id)})
        logger.info(f"Archived message {msg_id} from {queue_name}")
        return bool(data) if data is not None else True


queue_service = QueueService()
