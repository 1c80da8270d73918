# history.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from .results import WorkflowRun


class Base(DeclarativeBase):
    pass


class RunRecord(Base):
    __tablename__ = "runs"
    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    workflow: Mapped[str] = mapped_column(sa.Text, nullable=False)
    event: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[str] = mapped_column(sa.Text, nullable=False)
    cancelled: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    duration: Mapped[float] = mapped_column(sa.Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)


class ActionRecord(Base):
    __tablename__ = "action_results"
    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(sa.String(36), sa.ForeignKey("runs.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    state: Mapped[str] = mapped_column(sa.Text, nullable=False)
    exit_code: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(sa.Text, nullable=True)
    log: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    duration: Mapped[float] = mapped_column(sa.Float, nullable=False, default=0.0)


def _ensure_sqlite_dir(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return
    database = parsed.database
    if database and database != ":memory:":
        Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


class RunStore:
    """Persisted history of workflow runs (SQLite unless configured otherwise)."""

    def __init__(self, url: str):
        _ensure_sqlite_dir(url)
        self.engine = sa.create_engine(url)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(self.engine, expire_on_commit=False)

    def close(self) -> None:
        self.engine.dispose()

    def record(self, run: WorkflowRun) -> str:
        """Store a finished run and its action results. Returns the run id."""
        run_id = str(uuid.uuid4())
        with self.Session.begin() as s:
            s.add(
                RunRecord(
                    id=run_id,
                    workflow=run.workflow,
                    event=run.event.value,
                    status=run.status.value,
                    cancelled=run.cancelled,
                    duration=run.duration,
                    created_at=run.started_at or datetime.now(timezone.utc),
                )
            )
            # flush the parent row before children reference it
            s.flush()
            for result in run.results.values():
                s.add(
                    ActionRecord(
                        run_id=run_id,
                        name=result.name,
                        state=result.state.value,
                        exit_code=result.exit_code,
                        error=result.error,
                        log=result.log,
                        duration=result.duration,
                    )
                )
        return run_id

    @staticmethod
    def _row(rec: RunRecord) -> dict:
        return {
            "id": rec.id,
            "workflow": rec.workflow,
            "event": rec.event,
            "status": rec.status,
            "cancelled": rec.cancelled,
            "duration": rec.duration,
            "created_at": rec.created_at,
        }

    def recent(self, limit: int = 20) -> List[dict]:
        """Most recent runs first."""
        with self.Session() as s:
            q = sa.select(RunRecord).order_by(RunRecord.created_at.desc()).limit(limit)
            return [self._row(rec) for rec in s.scalars(q)]

    def get(self, run_id: str) -> Optional[dict]:
        """
        Look a run up by id or unique id prefix (as printed by recent()).
        Returns None when nothing or more than one run matches.
        """
        with self.Session() as s:
            q = sa.select(RunRecord).where(RunRecord.id.startswith(run_id, autoescape=True)).limit(2)
            matches = list(s.scalars(q))
            if len(matches) != 1:
                return None
            rec = matches[0]
            actions = s.scalars(
                sa.select(ActionRecord).where(ActionRecord.run_id == rec.id).order_by(ActionRecord.name)
            )
            row = self._row(rec)
            row["actions"] = [
                {
                    "name": a.name,
                    "state": a.state,
                    "exit_code": a.exit_code,
                    "error": a.error,
                    "log": a.log,
                    "duration": a.duration,
                }
                for a in actions
            ]
            return row
