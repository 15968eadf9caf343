"""LiveKit implementation of the telephony provider."""
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

from livekit import api

from virtual_mentor.core.config import LiveKitConfig
from virtual_mentor.services.calls.models import SipParticipant
from virtual_mentor.services.telephony.base import TelephonyProvider

logger = logging.getLogger(__name__)


def http_url(url: str) -> str:
    """LIVEKIT_URL is usually a websocket URL; the server API wants HTTP(S)."""
    if url.startswith("wss://"):
        return "https://" + url[len("wss://"):]
    if url.startswith("ws://"):
        return "http://" + url[len("ws://"):]
    return url


class LiveKitTelephony(TelephonyProvider):
    """Rooms, SIP legs and tokens through the LiveKit server SDK."""

    def __init__(self, config: LiveKitConfig):
        self.config = config

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[api.LiveKitAPI]:
        client = api.LiveKitAPI(
            http_url(self.config.url),
            self.config.api_key,
            self.config.api_secret,
        )
        try:
            yield client
        finally:
            await client.aclose()

    async def create_room(
        self, room_name: str, empty_timeout: int, max_participants: int
    ) -> None:
        async with self._client() as client:
            room = await client.room.create_room(
                api.CreateRoomRequest(
                    name=room_name,
                    empty_timeout=empty_timeout,
                    max_participants=max_participants,
                )
            )
        logger.info(f"[LIVEKIT] Created room {room.name} (sid {room.sid})")

    async def delete_room(self, room_name: str) -> None:
        async with self._client() as client:
            await client.room.delete_room(api.DeleteRoomRequest(room=room_name))
        logger.info(f"[LIVEKIT] Deleted room {room_name}")

    async def dial(
        self,
        room_name: str,
        phone_number: str,
        participant_identity: str,
        participant_name: str,
    ) -> SipParticipant:
        async with self._client() as client:
            info = await client.sip.create_sip_participant(
                api.CreateSIPParticipantRequest(
                    sip_trunk_id=self.config.sip_trunk_id,
                    sip_call_to=phone_number,
                    room_name=room_name,
                    participant_identity=participant_identity,
                    participant_name=participant_name,
                    play_dialtone=True,
                )
            )
        logger.info(
            f"[LIVEKIT] SIP participant created - room: {info.room_name}, "
            f"identity: {info.participant_identity}, id: {info.participant_id}"
        )
        return SipParticipant(
            participant_id=info.participant_id,
            participant_identity=info.participant_identity,
            room_name=info.room_name,
        )

    def mint_agent_token(
        self, room_name: str, identity: str, name: str, ttl: timedelta
    ) -> str:
        return (
            api.AccessToken(self.config.api_key, self.config.api_secret)
            .with_identity(identity)
            .with_name(name)
            .with_ttl(ttl)
            .with_grants(
                api.VideoGrants(
                    room_join=True,
                    room=room_name,
                    can_publish=True,
                    can_subscribe=True,
                    can_publish_data=True,
                )
            )
            .to_jwt()
        )

    async def room_exists(self, room_name: str) -> bool:
        async with self._client() as client:
            response = await client.room.list_rooms(
                api.ListRoomsRequest(names=[room_name])
            )
        return any(room.name == room_name for room in response.rooms)

    def room_url(self, room_name: str) -> str:
        return f"{self.config.url.rstrip('/')}/{room_name}"


def livekit_telephony_factory(config: LiveKitConfig) -> TelephonyProvider:
    return LiveKitTelephony(config)
