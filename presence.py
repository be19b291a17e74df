"""
Presence registry: who is in the room and when they were last heard from.
"""
import logging
import time
from typing import Callable, Iterable, List, Optional

from database import PARTICIPANTS, Store
from errors import Conflict, NotFound
from messages import JOIN_TEXT, MessageStore
from schemas import Participant, ParticipantIn, validate

logger = logging.getLogger(__name__)


class PresenceRegistry:
    def __init__(self, store: Store, messages: MessageStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.messages = messages
        self.clock = clock

    def join(self, name: str) -> Participant:
        """
        Register name and announce it to the room.

        The participant is inserted before the join notice is written; if the
        notice fails the participant stays registered.
        """
        name = validate(ParticipantIn, {"name": name}).name
        if self.store.find_document(PARTICIPANTS, {"name": name}) is not None:
            raise Conflict(f"Name '{name}' is already in use")

        participant = Participant(name=name, last_seen=self.clock())
        # the unique index turns a concurrent duplicate join into Conflict here
        self.store.create_document(PARTICIPANTS, participant.model_dump())
        self.messages.append_status(name, JOIN_TEXT)
        logger.info(f"Participant '{name}' joined")
        return participant

    def heartbeat(self, name: str) -> None:
        matched = 0
        if name:
            matched = self.store.update_document(PARTICIPANTS, {"name": name}, {"last_seen": self.clock()})
        if not matched:
            raise NotFound(f"Participant '{name}' is not in the room")
        logger.debug(f"Heartbeat from '{name}'")

    def list_active(self) -> List[Participant]:
        return [
            Participant(name=d["name"], last_seen=d["last_seen"])
            for d in self.store.get_documents(PARTICIPANTS)
        ]

    def stale(self, cutoff: float) -> List[Participant]:
        """Participants whose last heartbeat is older than cutoff."""
        docs = self.store.get_documents(PARTICIPANTS, {"last_seen": {"$lt": cutoff}})
        return [Participant(name=d["name"], last_seen=d["last_seen"]) for d in docs]

    def evict(self, name: str) -> bool:
        return self.store.delete_document(PARTICIPANTS, {"name": name}) > 0

    def evict_many(self, names: Iterable[str], cutoff: Optional[float] = None) -> int:
        """
        Remove names in one call.

        With a cutoff, only entries still older than it are removed, so a
        heartbeat that lands after the stale scan keeps its participant.
        """
        names = list(names)
        if not names:
            return 0
        filt = {"name": {"$in": names}}
        if cutoff is not None:
            filt["last_seen"] = {"$lt": cutoff}
        return self.store.delete_documents(PARTICIPANTS, filt)
