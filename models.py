# models.py
from __future__ import annotations

from sqlalchemy import (
    create_engine,
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Index,
    func,
)
from sqlalchemy.orm import declarative_base, sessionmaker

from config import DATABASE_URL

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

Base = declarative_base()


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(String(64), nullable=False)
    task = Column(Text, nullable=False)

    # Stored as opaque tokens: 'YYYY-MM-DD' and 'HH:MM' (24h, no timezone).
    # Lexical order of these tokens matches chronological order.
    date = Column(String(10), nullable=False)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)

    location = Column(String(200), nullable=True)
    type = Column(String(20), nullable=True)         # sports|meeting|class|deadline|social|admin|other

    created_at = Column(DateTime, nullable=True, server_default=func.now())

    __table_args__ = (
        Index("idx_events_chat_date", "chat_id", "date"),
        Index("idx_events_datetime", "date", "start_time"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Event(id={self.id!r}, chat_id={self.chat_id!r}, date={self.date!r}, "
            f"start={self.start_time!r}, end={self.end_time!r}, task={self.task!r})>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "task": self.task,
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "location": self.location,
            "type": self.type,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class RecurringClass(Base):
    """A weekly commitment (e.g. a lecture) that repeats on the same weekday forever."""

    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(String(64), nullable=False)
    subject = Column(Text, nullable=False)
    day_of_week = Column(Integer, nullable=False)    # 0=Sunday .. 6=Saturday
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    location = Column(String(200), nullable=True)

    created_at = Column(DateTime, nullable=True, server_default=func.now())

    __table_args__ = (
        Index("idx_classes_chat_day", "chat_id", "day_of_week"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<RecurringClass(id={self.id!r}, chat_id={self.chat_id!r}, day={self.day_of_week!r}, "
            f"start={self.start_time!r}, end={self.end_time!r}, subject={self.subject!r})>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "subject": self.subject,
            "day_of_week": self.day_of_week,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "location": self.location,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ----------------------------
# Utilities
# ----------------------------
def init_db(bind=None) -> None:
    """Creates tables if they don't exist."""
    Base.metadata.create_all(bind=bind or engine)
