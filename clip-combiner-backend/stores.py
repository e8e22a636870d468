"""
Stores for segments and combinations.

Both stores own their rows and only hand out frozen pydantic copies, so the
rest of the app can never mutate a record behind the store's back.
Segments are append-only. Combinations are created in batches and then
change status exactly once, from "processing" to "ready" or "error".
"""

import threading
import uuid
from typing import Dict, List, Optional

from config import POOL_TYPES
from exceptions import StatusTransitionError
from models import Combination, Segment
from schemas import CombinationOut, SegmentOut


class SegmentStore:
    """Append-only registry of uploaded clips."""

    def __init__(self, session_factory, lock=None):
        self._session_factory = session_factory
        self._lock = lock or threading.RLock()

    def add(self, segment_type: str, file: str, preview_url: str,
            thumbnail_url: Optional[str] = None) -> SegmentOut:
        if segment_type not in POOL_TYPES:
            raise ValueError(f"Unknown segment type: {segment_type!r}")

        with self._lock, self._session_factory() as db:
            segment = Segment(
                id=str(uuid.uuid4()),
                type=segment_type,
                file=file,
                preview_url=preview_url,
                thumbnail_url=thumbnail_url,
            )
            db.add(segment)
            db.commit()
            return SegmentOut.model_validate(segment)

    def get(self, segment_id: str) -> Optional[SegmentOut]:
        with self._lock, self._session_factory() as db:
            segment = db.query(Segment).filter(Segment.id == segment_id).first()
            return SegmentOut.model_validate(segment) if segment else None

    def list(self, segment_type: Optional[str] = None) -> List[SegmentOut]:
        with self._lock, self._session_factory() as db:
            query = db.query(Segment)
            if segment_type is not None:
                query = query.filter(Segment.type == segment_type)
            return [SegmentOut.model_validate(s) for s in query.order_by(Segment.seq)]

    def by_pool(self) -> Dict[str, List[SegmentOut]]:
        """Snapshot of every pool, each in upload order."""
        pools = {pool: [] for pool in POOL_TYPES}
        for segment in self.list():
            pools[segment.type].append(segment)
        return pools


class CombinationStore:
    """Holds combination records and their one-way status."""

    def __init__(self, session_factory, lock=None):
        self._session_factory = session_factory
        self._lock = lock or threading.RLock()

    def add_many(self, records: List[dict]) -> List[CombinationOut]:
        """
        Inserts a batch of new combinations in a single transaction.
        Each record needs id, hook, story and cta; status always starts as "processing".
        """
        with self._lock, self._session_factory() as db:
            rows = [
                Combination(
                    id=record["id"],
                    hook=record["hook"],
                    story=record["story"],
                    cta=record["cta"],
                    status="processing",
                )
                for record in records
            ]
            db.add_all(rows)
            db.commit()
            return [CombinationOut.model_validate(row) for row in rows]

    def get(self, combination_id: str) -> Optional[CombinationOut]:
        with self._lock, self._session_factory() as db:
            row = db.query(Combination).filter(Combination.id == combination_id).first()
            return CombinationOut.model_validate(row) if row else None

    def list(self) -> List[CombinationOut]:
        with self._lock, self._session_factory() as db:
            rows = db.query(Combination).order_by(Combination.seq).all()
            return [CombinationOut.model_validate(row) for row in rows]

    def count(self) -> int:
        with self._lock, self._session_factory() as db:
            return db.query(Combination).count()

    def mark_ready(self, combination_id: str, download_url: str) -> CombinationOut:
        return self._finish(combination_id, "ready", download_url=download_url)

    def mark_error(self, combination_id: str, message: str) -> CombinationOut:
        return self._finish(combination_id, "error", error=message)

    def _finish(self, combination_id: str, status: str, **fields) -> CombinationOut:
        with self._lock, self._session_factory() as db:
            row = db.query(Combination).filter(Combination.id == combination_id).first()
            if row is None:
                raise KeyError(f"Unknown combination: {combination_id}")
            if row.status != "processing":
                raise StatusTransitionError(combination_id, row.status, status)

            row.status = status
            for name, value in fields.items():
                setattr(row, name, value)
            db.commit()
            return CombinationOut.model_validate(row)
