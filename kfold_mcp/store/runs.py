"""Persistence of cross-validation runs."""

import json
import uuid
from dataclasses import dataclass, field, asdict, fields
from datetime import datetime
from pathlib import Path
from typing import Optional, Any
import aiosqlite

from ..harness.config import RunConfig
from ..harness.models import Fold, ModelHandle, RunResult

RUNNING = "running"


def config_to_dict(config: RunConfig) -> dict:
    """Scalar settings of a run configuration."""
    return {
        f.name: getattr(config, f.name)
        for f in fields(config)
        if f.name not in ("folds", "train_models")
    }


@dataclass
class RunRecord:
    """A stored cross-validation run."""
    run_id: str
    status: str
    source: str
    config: dict[str, Any]
    train_only: bool = False
    prediction_count: int = 0
    reports: Optional[Any] = None
    error: Optional[str] = None
    models_deleted: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        d = asdict(self)
        d["created_at"] = self.created_at.isoformat()
        d["completed_at"] = self.completed_at.isoformat() if self.completed_at else None
        return d

    @classmethod
    def from_row(cls, row: dict) -> "RunRecord":
        """Create from a database row."""
        return cls(
            run_id=row["run_id"],
            status=row["status"],
            source=row["source"] or "",
            config=json.loads(row["config"] or "{}"),
            train_only=bool(row["train_only"]),
            prediction_count=row["prediction_count"] or 0,
            reports=json.loads(row["reports"]) if row["reports"] else None,
            error=row["error"],
            models_deleted=bool(row["models_deleted"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            completed_at=(
                datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None
            ),
        )


class RunStore:
    """Stores runs and their folds in SQLite."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or Path("./kfold_data/runs.db")
        self._initialized = False

    async def _ensure_initialized(self):
        """Ensure database is initialized."""
        if self._initialized:
            return

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS runs (
                    run_id TEXT PRIMARY KEY,
                    status TEXT NOT NULL,
                    source TEXT,
                    config TEXT,
                    train_only INTEGER DEFAULT 0,
                    prediction_count INTEGER DEFAULT 0,
                    reports TEXT,
                    error TEXT,
                    models_deleted INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL,
                    completed_at TEXT
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS folds (
                    run_id TEXT NOT NULL,
                    fold_index INTEGER NOT NULL,
                    model TEXT NOT NULL,
                    train TEXT NOT NULL,
                    test TEXT NOT NULL,
                    PRIMARY KEY (run_id, fold_index),
                    FOREIGN KEY (run_id) REFERENCES runs(run_id)
                )
            """)

            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_runs_created
                ON runs(created_at)
            """)

            await db.commit()

        self._initialized = True

    async def create_run(self, config: RunConfig, source: str = "") -> RunRecord:
        """Record a run that is about to start."""
        await self._ensure_initialized()

        run = RunRecord(
            run_id=str(uuid.uuid4()),
            status=RUNNING,
            source=source,
            config=config_to_dict(config),
            train_only=config.train_only,
        )

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO runs
                (run_id, status, source, config, train_only, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    run.run_id,
                    run.status,
                    run.source,
                    json.dumps(run.config, default=str),
                    int(run.train_only),
                    run.created_at.isoformat(),
                ),
            )
            await db.commit()

        return run

    async def complete_run(self, run_id: str, result: RunResult) -> Optional[RunRecord]:
        """Store the outcome of a run.

        Folds and model handles are kept for train-only runs so they can be
        resumed.
        """
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                UPDATE runs
                SET status = ?, prediction_count = ?, reports = ?, error = ?,
                    completed_at = ?
                WHERE run_id = ?
                """,
                (
                    result.status.value,
                    len(result.predictions),
                    json.dumps(result.reports, default=str) if result.reports is not None else None,
                    result.error,
                    datetime.now().isoformat(),
                    run_id,
                ),
            )

            if result.train_only and len(result.folds) == len(result.train_models):
                await db.execute("DELETE FROM folds WHERE run_id = ?", (run_id,))
                await db.executemany(
                    """
                    INSERT INTO folds (run_id, fold_index, model, train, test)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            run_id,
                            i,
                            json.dumps(
                                model.to_dict() if isinstance(model, ModelHandle) else {"id": str(model)},
                                default=str,
                            ),
                            json.dumps([e.to_dict() for e in fold.train], default=str),
                            json.dumps([e.to_dict() for e in fold.test], default=str),
                        )
                        for i, (fold, model) in enumerate(zip(result.folds, result.train_models))
                    ],
                )

            await db.commit()

        return await self.get_run(run_id)

    async def mark_models_deleted(self, run_id: str) -> None:
        """Flag that a run's models no longer exist."""
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "UPDATE runs SET models_deleted = 1 WHERE run_id = ?",
                (run_id,),
            )
            await db.commit()

    async def get_run(self, run_id: str) -> Optional[RunRecord]:
        """Get a run by ID."""
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM runs WHERE run_id = ?",
                (run_id,),
            ) as cursor:
                row = await cursor.fetchone()
                if row:
                    return RunRecord.from_row(dict(row))
        return None

    async def list_runs(self, limit: int = 20) -> list[RunRecord]:
        """Most recent runs first."""
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM runs ORDER BY created_at DESC LIMIT ?",
                (limit,),
            ) as cursor:
                rows = await cursor.fetchall()
                return [RunRecord.from_row(dict(row)) for row in rows]

    async def load_resume_state(
        self,
        run_id: str,
    ) -> Optional[tuple[tuple[Fold, ...], tuple[ModelHandle, ...]]]:
        """Folds and model handles stored for a train-only run."""
        await self._ensure_initialized()

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM folds WHERE run_id = ? ORDER BY fold_index",
                (run_id,),
            ) as cursor:
                rows = await cursor.fetchall()

        if not rows:
            return None

        folds = tuple(
            Fold.from_dict({"train": json.loads(r["train"]), "test": json.loads(r["test"])})
            for r in rows
        )
        models = tuple(ModelHandle.from_dict(json.loads(r["model"])) for r in rows)
        return folds, models

    async def get_run_summary(self, run_id: str) -> dict:
        """Get a summary of a run."""
        run = await self.get_run(run_id)
        if not run:
            return {}

        summary = (run.reports or {}).get("summary", {}) if isinstance(run.reports, dict) else {}
        resume = await self.load_resume_state(run_id)

        return {
            "run_id": run.run_id,
            "status": run.status,
            "source": run.source,
            "train_only": run.train_only,
            "num_folds": run.config.get("num_folds"),
            "seed": run.config.get("seed"),
            "prediction_count": run.prediction_count,
            "accuracy": summary.get("accuracy"),
            "macro_f1": summary.get("macro_f1"),
            "error": run.error,
            "resumable": bool(resume) and not run.models_deleted,
            "models_deleted": run.models_deleted,
            "created_at": run.created_at.isoformat(),
            "completed_at": run.completed_at.isoformat() if run.completed_at else None,
        }
