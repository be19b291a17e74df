"""
Message store: append, ownership checked edit/delete and the visibility query.
"""
import logging
import time
from datetime import datetime
from typing import Callable, List

from config import BROADCAST_TARGET
from database import MESSAGES, PARTICIPANTS, Store, parse_id, to_str_id
from errors import NotFound, Unauthorized
from schemas import Message, MessageIn, MessageType, validate

logger = logging.getLogger(__name__)

JOIN_TEXT = "entered the room"
LEAVE_TEXT = "left the room"


def format_time(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%H:%M:%S")


def visibility_filter(user: str) -> dict:
    """Messages a user may read: broadcast, public, sent by or addressed to them."""
    return {
        "$or": [
            {"to": BROADCAST_TARGET},
            {"type": MessageType.MESSAGE.value},
            {"from": user},
            {"to": user},
        ]
    }


class MessageStore:
    def __init__(self, store: Store, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    def _insert(self, sender: str, to: str, text: str, kind: str) -> str:
        doc = {
            "from": sender,
            "to": to,
            "text": text,
            "type": kind,
            "time": format_time(self.clock()),
        }
        return self.store.create_document(MESSAGES, doc)

    def append_status(self, name: str, text: str) -> str:
        """Write a system notice about name to the whole room."""
        return self._insert(name, BROADCAST_TARGET, text, MessageType.STATUS.value)

    def send(self, sender: str, to: str, text: str, kind: str) -> str:
        if not sender or self.store.find_document(PARTICIPANTS, {"name": sender}) is None:
            raise NotFound(f"Participant '{sender}' is not in the room")

        body = validate(MessageIn, {"to": to, "text": text, "type": kind})
        message_id = self._insert(sender, body.to, body.text, body.type)
        logger.debug(f"{body.type} from {sender} to {body.to} stored as {message_id}")
        return message_id

    def _find(self, message_id: str) -> dict:
        oid = parse_id(message_id)
        doc = self.store.find_document(MESSAGES, {"_id": oid}) if oid else None
        if doc is None:
            raise NotFound(f"Message '{message_id}' not found")
        return doc

    def get(self, message_id: str) -> Message:
        return Message(**to_str_id(self._find(message_id)))

    def edit(self, message_id: str, editor: str, to: str, text: str, kind: str) -> Message:
        """
        Replace recipient, text and type of a message owned by editor.

        The id and the original sender are kept; time is refreshed.
        """
        body = validate(MessageIn, {"to": to, "text": text, "type": kind})
        doc = self._find(message_id)
        if doc["from"] != editor:
            raise Unauthorized(f"Only {doc['from']} can edit this message")

        values = {
            "to": body.to,
            "text": body.text,
            "type": body.type,
            "time": format_time(self.clock()),
        }
        matched = self.store.update_document(MESSAGES, {"_id": doc["_id"], "from": editor}, values)
        if not matched:
            raise NotFound(f"Message '{message_id}' not found")
        doc.update(values)
        return Message(**to_str_id(doc))

    def delete(self, message_id: str, requester: str) -> None:
        doc = self._find(message_id)
        if doc["from"] != requester:
            raise Unauthorized(f"Only {doc['from']} can delete this message")
        if not self.store.delete_document(MESSAGES, {"_id": doc["_id"], "from": requester}):
            raise NotFound(f"Message '{message_id}' not found")
        logger.debug(f"Message {message_id} deleted by {requester}")

    def list_visible(self, user: str, limit: int = 0) -> List[Message]:
        """
        Messages visible to user in insertion order.

        limit <= 0 returns all of them, otherwise the most recent limit.
        """
        filt = visibility_filter(user)
        if limit and limit > 0:
            docs = self.store.get_documents(MESSAGES, filt, sort=("_id", -1), limit=limit)
            docs.reverse()
        else:
            docs = self.store.get_documents(MESSAGES, filt, sort=("_id", 1))
        return [Message(**to_str_id(d)) for d in docs]
