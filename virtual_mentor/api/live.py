"""WebSocket streams of live session and conversation views."""
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import async_sessionmaker

from virtual_mentor.db.database import get_session_factory
from virtual_mentor.services.realtime.feed import ChangeFeed, get_change_feed
from virtual_mentor.services.realtime.observer import ConversationObserver, SessionWatcher

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/api/users/{user_id}/conversation/live")
async def stream_user_conversation(
    websocket: WebSocket,
    user_id: str,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """
    Push {conversation, messages, loading, error} whenever it changes.

    The client may send {"userId": "..."} to switch users on the same socket.
    """
    await websocket.accept()
    observer = ConversationObserver(session_factory, feed, on_change=websocket.send_json)
    try:
        await observer.select(user_id)
        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict) and "userId" in data:
                await observer.select(data.get("userId"))
    except WebSocketDisconnect:
        logger.info(f"[LIVE] Conversation stream closed for user {observer.user_id}")
    finally:
        await observer.close()


@router.websocket("/api/sessions/{session_id}/live")
async def stream_session(
    websocket: WebSocket,
    session_id: str,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    feed: ChangeFeed = Depends(get_change_feed),
):
    """Push {session, messages, loading, error} whenever the session changes."""
    await websocket.accept()
    watcher = SessionWatcher(session_factory, feed, on_change=websocket.send_json)
    try:
        await watcher.watch(session_id)
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"[LIVE] Session stream closed for session {session_id}")
    finally:
        await watcher.close()
