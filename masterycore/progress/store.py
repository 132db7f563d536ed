"""
Progress persistence.

Two interchangeable stores hold a learner's ProgressState document and the
append-only log of quizzes it was built from:

- JsonProgressStore: one JSON file per learner plus a JSON-lines history
  file, under ``data_dir`` (default ~/.mastery/)
- SqlProgressStore: two SQLAlchemy tables on any database URL

Both raise PersistenceError when the underlying storage fails.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import Integer, String, Text, create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from masterycore.config import Settings, get_settings
from masterycore.core.models import PersistenceError, ProgressState
from masterycore.core.schemas import QuizPayload

_SAFE_ID = re.compile(r"[^A-Za-z0-9_.-]")


class ProgressStore(Protocol):
    """Persistence collaborator for per-learner progress."""

    def load(self, learner_id: str) -> ProgressState | None: ...

    def save(self, learner_id: str, state: ProgressState) -> None: ...

    def load_history(self, learner_id: str) -> list[QuizPayload]: ...

    def append_quiz(self, learner_id: str, quiz: QuizPayload) -> None: ...


def _parse_state(learner_id: str, text: str) -> ProgressState:
    try:
        return ProgressState.from_json(text)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        raise PersistenceError(f"Corrupt progress document for {learner_id}: {e}") from e


def _parse_quiz(learner_id: str, text: str) -> QuizPayload:
    try:
        return QuizPayload.model_validate_json(text)
    except ValidationError as e:
        raise PersistenceError(f"Corrupt quiz history entry for {learner_id}: {e}") from e


# =============================================================================
# JSON FILES
# =============================================================================


class JsonProgressStore:
    """
    File-based store.

    Layout: ``{data_dir}/{learner_id}.json`` for the state and
    ``{data_dir}/{learner_id}.history.jsonl`` for the quiz log. State writes
    go through a temporary file and os.replace so a crash never leaves a
    half-written document.
    """

    def __init__(self, data_dir: Path | str | None = None):
        self.data_dir = Path(data_dir) if data_dir else get_settings().data_dir
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data directory {self.data_dir}: {e}") from e

    def _state_path(self, learner_id: str) -> Path:
        return self.data_dir / f"{_SAFE_ID.sub('_', learner_id)}.json"

    def _history_path(self, learner_id: str) -> Path:
        return self.data_dir / f"{_SAFE_ID.sub('_', learner_id)}.history.jsonl"

    def load(self, learner_id: str) -> ProgressState | None:
        path = self._state_path(learner_id)
        if not path.exists():
            return None
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            raise PersistenceError(f"Cannot read progress for {learner_id}: {e}") from e
        return _parse_state(learner_id, text)

    def save(self, learner_id: str, state: ProgressState) -> None:
        path = self._state_path(learner_id)
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.data_dir, suffix=".tmp", delete=False
            ) as f:
                tmp_name = f.name
                f.write(state.to_json(indent=2))
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error(f"Failed to write {path}: {e}")
            raise PersistenceError(f"Cannot save progress for {learner_id}: {e}") from e

    def load_history(self, learner_id: str) -> list[QuizPayload]:
        path = self._history_path(learner_id)
        if not path.exists():
            return []
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            raise PersistenceError(f"Cannot read quiz history for {learner_id}: {e}") from e
        return [_parse_quiz(learner_id, line) for line in lines if line.strip()]

    def append_quiz(self, learner_id: str, quiz: QuizPayload) -> None:
        path = self._history_path(learner_id)
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(json.dumps(quiz.to_document(), sort_keys=True) + "\n")
        except OSError as e:
            logger.error(f"Failed to append to {path}: {e}")
            raise PersistenceError(f"Cannot append quiz for {learner_id}: {e}") from e


# =============================================================================
# SQL
# =============================================================================


class Base(DeclarativeBase):
    pass


class ProgressStateRecord(Base):
    """Latest ProgressState document per learner."""

    __tablename__ = "progress_state"

    learner_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    document: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class QuizHistoryRecord(Base):
    """One completed quiz in a learner's append-only history."""

    __tablename__ = "quiz_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    learner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    quiz_id: Mapped[str] = mapped_column(String(255), nullable=False)
    document: Mapped[str] = mapped_column(Text, nullable=False)


class SqlProgressStore:
    """SQLAlchemy-backed store on any database URL, e.g. ``sqlite:///progress.db``."""

    def __init__(self, database_url: str, echo: bool = False):
        try:
            self.engine = create_engine(database_url, echo=echo, pool_pre_ping=True)
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Cannot open database {database_url}: {e}") from e
        self._sessions = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Transactional scope; database errors surface as PersistenceError."""
        session = self._sessions()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise PersistenceError(str(e)) from e
        finally:
            session.close()

    def load(self, learner_id: str) -> ProgressState | None:
        with self.session_scope() as session:
            record = session.get(ProgressStateRecord, learner_id)
            text = record.document if record else None
        return _parse_state(learner_id, text) if text is not None else None

    def save(self, learner_id: str, state: ProgressState) -> None:
        with self.session_scope() as session:
            record = session.get(ProgressStateRecord, learner_id)
            if record is None:
                session.add(ProgressStateRecord(learner_id=learner_id, document=state.to_json()))
            else:
                record.document = state.to_json()

    def load_history(self, learner_id: str) -> list[QuizPayload]:
        with self.session_scope() as session:
            documents = session.scalars(
                select(QuizHistoryRecord.document)
                .where(QuizHistoryRecord.learner_id == learner_id)
                .order_by(QuizHistoryRecord.seq)
            ).all()
        return [_parse_quiz(learner_id, doc) for doc in documents]

    def append_quiz(self, learner_id: str, quiz: QuizPayload) -> None:
        with self.session_scope() as session:
            last_seq = session.scalar(
                select(func.max(QuizHistoryRecord.seq)).where(QuizHistoryRecord.learner_id == learner_id)
            )
            session.add(
                QuizHistoryRecord(
                    learner_id=learner_id,
                    seq=(last_seq or 0) + 1,
                    quiz_id=quiz.id,
                    document=json.dumps(quiz.to_document(), sort_keys=True),
                )
            )


def open_store(settings: Settings | None = None) -> ProgressStore:
    """SQL store when a database URL is configured, JSON files otherwise."""
    settings = settings or get_settings()
    if settings.database_url:
        return SqlProgressStore(settings.database_url, echo=settings.log_level == "DEBUG")
    return JsonProgressStore(settings.data_dir)
