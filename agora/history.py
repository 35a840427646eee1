"""Discussion history in SQLite, fed by the engine's event stream."""

import logging
import uuid
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, create_engine, select
from sqlalchemy import event as sa_event
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from agora.events import AgentDone, RoundtableDone, RoundtableEvent, SynthesisDone

logger = logging.getLogger(__name__)

Base = declarative_base()


class Discussion(Base):
    """One roundtable run."""
    __tablename__ = "discussions"

    id = Column(String(12), primary_key=True)
    topic = Column(Text, nullable=False)
    preset = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    duration_ms = Column(Integer, nullable=True)
    total_tokens = Column(Integer, nullable=True)
    synthesis = Column(Text, nullable=True)

    messages = relationship("Message", back_populates="discussion", order_by="Message.id")


class Message(Base):
    """A completed panelist turn."""
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    discussion_id = Column(String(12), ForeignKey("discussions.id"), nullable=False)
    agent_id = Column(String(255), nullable=False)
    agent_name = Column(String(255), nullable=False)
    round = Column(Integer, nullable=False)
    role = Column(String(20), nullable=False)  # panelist
    content = Column(Text, nullable=False)
    model = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    discussion = relationship("Discussion", back_populates="messages")


@dataclass
class DiscussionSummary:
    id: str
    topic: str
    preset: str | None
    created_at: datetime
    duration_ms: int | None
    total_tokens: int | None
    synthesis: str | None


@dataclass
class DiscussionMessage:
    agent_id: str
    agent_name: str
    round: int
    role: str
    content: str
    model: str | None


def _summary(row: Discussion) -> DiscussionSummary:
    return DiscussionSummary(
        id=row.id,
        topic=row.topic,
        preset=row.preset,
        created_at=row.created_at,
        duration_ms=row.duration_ms,
        total_tokens=row.total_tokens,
        synthesis=row.synthesis,
    )


class HistoryStore:
    """SQLite-backed store of past discussions."""

    def __init__(self, db_path: Path | str) -> None:
        if str(db_path) == ":memory:":
            url = "sqlite://"
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite:///{path}"
        self._engine = create_engine(url, future=True)

        @sa_event.listens_for(self._engine, "connect")
        def _sqlite_pragmas(dbapi_conn, _record) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        Base.metadata.create_all(self._engine)
        self._session = sessionmaker(self._engine, expire_on_commit=False)

    def create_discussion(self, topic: str, preset: str | None = None) -> str:
        discussion_id = uuid.uuid4().hex[:12]
        with self._session.begin() as session:
            session.add(Discussion(id=discussion_id, topic=topic, preset=preset))
        logger.debug("Created discussion %s", discussion_id)
        return discussion_id

    def add_message(
        self,
        discussion_id: str,
        *,
        agent_id: str,
        agent_name: str,
        round_number: int,
        content: str,
        model: str | None,
        role: str = "panelist",
    ) -> None:
        with self._session.begin() as session:
            session.add(
                Message(
                    discussion_id=discussion_id,
                    agent_id=agent_id,
                    agent_name=agent_name,
                    round=round_number,
                    role=role,
                    content=content,
                    model=model,
                )
            )

    def set_synthesis(self, discussion_id: str, synthesis: str) -> None:
        with self._session.begin() as session:
            row = session.get(Discussion, discussion_id)
            if row is not None:
                row.synthesis = synthesis

    def set_stats(self, discussion_id: str, duration_ms: int, total_tokens: int) -> None:
        with self._session.begin() as session:
            row = session.get(Discussion, discussion_id)
            if row is not None:
                row.duration_ms = duration_ms
                row.total_tokens = total_tokens

    def list_discussions(self, limit: int = 20) -> list[DiscussionSummary]:
        """Most recent first."""
        with self._session() as session:
            rows = session.scalars(
                select(Discussion).order_by(Discussion.created_at.desc()).limit(limit)
            ).all()
            return [_summary(r) for r in rows]

    def get_discussion(self, discussion_id: str) -> tuple[DiscussionSummary, list[DiscussionMessage]] | None:
        with self._session() as session:
            row = session.get(Discussion, discussion_id)
            if row is None:
                return None
            messages = [
                DiscussionMessage(
                    agent_id=m.agent_id,
                    agent_name=m.agent_name,
                    round=m.round,
                    role=m.role,
                    content=m.content,
                    model=m.model,
                )
                for m in row.messages
            ]
            return _summary(row), messages


class DiscussionRecorder:
    """Persists a run as its events go by. Safe to call with any event type."""

    def __init__(self, store: HistoryStore, topic: str, preset: str | None = None) -> None:
        self._store = store
        self._id = store.create_discussion(topic, preset)

    @property
    def discussion_id(self) -> str:
        return self._id

    def handle_event(self, event: RoundtableEvent) -> None:
        if isinstance(event, AgentDone):
            self._store.add_message(
                self._id,
                agent_id=event.agent_id,
                agent_name=event.agent_name,
                round_number=event.round,
                content=event.full_response,
                model=event.model,
            )
        elif isinstance(event, SynthesisDone):
            self._store.set_synthesis(self._id, event.answer)
        elif isinstance(event, RoundtableDone):
            self._store.set_stats(self._id, event.stats.duration_ms, event.stats.total_tokens_estimate)


async def record_events(
    events: AsyncIterator[RoundtableEvent],
    recorder: DiscussionRecorder,
) -> AsyncIterator[RoundtableEvent]:
    """Pass events through unchanged, recording each one first."""
    async for event in events:
        recorder.handle_event(event)
        yield event
