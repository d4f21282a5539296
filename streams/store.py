from __future__ import annotations

from collections import defaultdict, deque
from contextlib import contextmanager
from typing import Deque, DefaultDict, Dict, List, Optional
import json

try:
    import psycopg2
    from psycopg2 import pool as psycopg2_pool
except ImportError:  # pragma: no cover - optional dependency
    psycopg2 = None  # type: ignore
    psycopg2_pool = None  # type: ignore

from streams.models import SignalReading


class InMemorySignalStore:
    """Signal history per profile with bounded retention."""

    def __init__(self, max_per_profile: int = 1000):
        self.max_per_profile = max_per_profile
        self._readings: DefaultDict[str, Deque[SignalReading]] = defaultdict(
            lambda: deque(maxlen=self.max_per_profile)
        )

    def append(self, reading: SignalReading) -> None:
        self._readings[reading.profile_id].append(reading)

    def recent(
        self,
        profile_id: str,
        limit: int = 20,
        session_id: Optional[str] = None,
    ) -> List[SignalReading]:
        readings = list(self._readings.get(profile_id, []))
        if session_id is not None:
            readings = [r for r in readings if r.session_id == session_id]
        readings.sort(key=lambda r: r.timestamp_utc)
        return readings[-limit:] if limit > 0 else []

    def count(self, profile_id: str) -> int:
        return len(self._readings.get(profile_id, []))


class PostgresSignalStore:
    """Postgres-backed signal history for deployments that keep readings."""

    def __init__(self, dsn: str, table: str = "signal_readings", create_table: bool = True, minconn: int = 1, maxconn: int = 5):
        if psycopg2 is None or psycopg2_pool is None:
            raise ImportError("psycopg2-binary is required for PostgresSignalStore")
        self.dsn = dsn
        self.table = table
        self._pool = psycopg2_pool.SimpleConnectionPool(minconn, maxconn, dsn)
        if create_table:
            self._ensure_table()

    @contextmanager
    def _connection(self):
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    def close(self) -> None:
        if self._pool:
            self._pool.closeall()

    def _ensure_table(self) -> None:
        ddl = f"""
        CREATE TABLE IF NOT EXISTS {self.table} (
            reading_id TEXT PRIMARY KEY,
            profile_id TEXT NOT NULL,
            session_id TEXT,
            ts TIMESTAMPTZ NOT NULL,
            reading JSONB NOT NULL
        );
        CREATE INDEX IF NOT EXISTS {self.table}_profile_ts ON {self.table} (profile_id, ts);
        """
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(ddl)
            conn.commit()

    @staticmethod
    def _reading_to_row(reading: SignalReading) -> Dict[str, object]:
        return {
            "reading_id": reading.reading_id,
            "profile_id": reading.profile_id,
            "session_id": reading.session_id,
            "ts": reading.timestamp_utc,
            "reading": reading.model_dump_json(by_alias=True),
        }

    def append(self, reading: SignalReading) -> None:
        sql = f"""
        INSERT INTO {self.table} (reading_id, profile_id, session_id, ts, reading)
        VALUES (%(reading_id)s, %(profile_id)s, %(session_id)s, %(ts)s, %(reading)s)
        ON CONFLICT (reading_id) DO NOTHING;
        """
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(sql, self._reading_to_row(reading))
            conn.commit()

    def recent(
        self,
        profile_id: str,
        limit: int = 20,
        session_id: Optional[str] = None,
    ) -> List[SignalReading]:
        query = f"SELECT reading FROM {self.table} WHERE profile_id = %(profile_id)s"
        params: Dict[str, object] = {"profile_id": profile_id, "limit": limit}
        if session_id is not None:
            query += " AND session_id = %(session_id)s"
            params["session_id"] = session_id
        query += " ORDER BY ts DESC LIMIT %(limit)s"
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
        readings = [SignalReading.from_payload(self._decode(r[0])) for r in rows]
        return list(reversed(readings))

    def count(self, profile_id: str) -> int:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(f"SELECT count(*) FROM {self.table} WHERE profile_id = %(profile_id)s", {"profile_id": profile_id})
            row = cur.fetchone()
        return int(row[0]) if row else 0

    @staticmethod
    def _decode(value: object) -> object:
        # psycopg2 returns JSONB as a dict, plain text columns as str
        return json.loads(value) if isinstance(value, str) else value
