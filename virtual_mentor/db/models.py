"""Database models."""
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

from virtual_mentor.core.clock import utcnow

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class CallSession(Base):
    """One outbound call attempt and its lifecycle."""

    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String, index=True, nullable=False)
    # scheduled, in-progress, ringing, connected, completed, missed, ended
    status = Column(String, default="in-progress", nullable=False)
    # initiating, ringing, connected, disconnected, failed
    call_status = Column(String, default="initiating", nullable=True)
    # Correlation key for webhook events
    room_name = Column(String, unique=True, index=True, nullable=True)
    phone_number = Column(String, nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    connected_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=True)  # seconds
    transcript = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    messages = relationship(
        "SessionMessage",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="[SessionMessage.timestamp, SessionMessage.seq]",
    )


class SessionMessage(Base):
    """A chat turn recorded against a session."""

    __tablename__ = "session_messages"

    # Insertion order; breaks ties between turns stored in the same clock tick
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, index=True, nullable=False, default=new_id)
    session_id = Column(String(36), ForeignKey("sessions.id"), index=True, nullable=False)
    text = Column(Text, nullable=False)
    sender = Column(String, nullable=False)  # ai, user
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    is_transcribing = Column(Boolean, default=False, nullable=False)

    session = relationship("CallSession", back_populates="messages")


class Conversation(Base):
    """Transcript record written by the external voice agent."""

    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=new_id)
    phone_number = Column(String, index=True, nullable=False)
    room_name = Column(String, nullable=True)
    job_id = Column(String, nullable=True)
    status = Column(String, default="active", nullable=False)  # active, completed
    started_at = Column(DateTime, default=utcnow, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    last_message = Column(Text, nullable=True)
    last_message_at = Column(DateTime, nullable=True)
    last_message_id = Column(String(36), nullable=True)
    last_message_role = Column(String, nullable=True)  # assistant, user
    user_id = Column(String, nullable=True)
    user_name = Column(String, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    messages = relationship(
        "ConversationMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="[ConversationMessage.timestamp, ConversationMessage.seq]",
    )


class ConversationMessage(Base):
    """A role-tagged turn inside a conversation."""

    __tablename__ = "conversation_messages"

    # Insertion order; breaks ties between turns stored in the same clock tick
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), unique=True, index=True, nullable=False, default=new_id)
    conversation_id = Column(
        String(36), ForeignKey("conversations.id"), index=True, nullable=False
    )
    message = Column(Text, nullable=False)
    role = Column(String, nullable=False)  # assistant, user
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    user_id = Column(String, nullable=True)

    conversation = relationship("Conversation", back_populates="messages")


class User(Base):
    """User profile, read to resolve a user id to a phone number."""

    __tablename__ = "users"

    uid = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, index=True, nullable=True)
    timezone = Column(String, nullable=True)
    schedule_time = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
