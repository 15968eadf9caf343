"""Telephony provider interface."""
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Callable

from virtual_mentor.core.config import LiveKitConfig
from virtual_mentor.services.calls.models import SipParticipant


class TelephonyProvider(ABC):
    """Abstract base class for the SFU/telephony provider."""

    @abstractmethod
    async def create_room(
        self, room_name: str, empty_timeout: int, max_participants: int
    ) -> None:
        """Create a room that is reclaimed after ``empty_timeout`` idle seconds."""
        pass

    @abstractmethod
    async def delete_room(self, room_name: str) -> None:
        pass

    @abstractmethod
    async def dial(
        self,
        room_name: str,
        phone_number: str,
        participant_identity: str,
        participant_name: str,
    ) -> SipParticipant:
        """Place an outbound phone leg into a room. Rings a real phone."""
        pass

    @abstractmethod
    def mint_agent_token(
        self, room_name: str, identity: str, name: str, ttl: timedelta
    ) -> str:
        """Short-lived join credential scoped to one room."""
        pass

    @abstractmethod
    async def room_exists(self, room_name: str) -> bool:
        """Whether the provider still has an active room with this name."""
        pass

    @abstractmethod
    def room_url(self, room_name: str) -> str:
        pass


TelephonyFactory = Callable[[LiveKitConfig], TelephonyProvider]
