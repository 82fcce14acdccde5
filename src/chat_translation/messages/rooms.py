"""Room membership lookups used to authorize manual retries."""

from abc import ABC, abstractmethod
from typing import Iterable, Optional


class RoomDirectory(ABC):
    """Answers whether a user belongs to a room."""

    @abstractmethod
    async def is_member(self, user_name: str, room_name: str) -> bool:
        pass


class InMemoryRoomDirectory(RoomDirectory):
    """Room membership kept in a dict of room name -> user names."""

    def __init__(self, rooms: Optional[dict[str, Iterable[str]]] = None):
        self._rooms: dict[str, set[str]] = {}
        for room_name, users in (rooms or {}).items():
            for user_name in users:
                self.add_member(room_name, user_name)

    def add_member(self, room_name: str, user_name: str) -> None:
        # Names compare case-insensitively
        self._rooms.setdefault(room_name.lower(), set()).add(user_name.lower())

    def remove_member(self, room_name: str, user_name: str) -> None:
        self._rooms.get(room_name.lower(), set()).discard(user_name.lower())

    async def is_member(self, user_name: str, room_name: str) -> bool:
        if not user_name or not room_name:
            return False
        return user_name.lower() in self._rooms.get(room_name.lower(), set())
