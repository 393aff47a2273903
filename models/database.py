"""SQLite database for metric samples, alert rules and alert events.

Every query is scoped by ``user_id``; there is no method that reads or
writes another user's rows.
"""
import sqlite3
import logging
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path

from models.alerts import AlertRule, AlertEvent
from models.metrics import MetricSample
from utils.errors import StorageError
from utils.timeutil import to_iso, utc_now

logger = logging.getLogger("metricwatch.db")

_ANY = object()

RULE_COLUMNS = ("metric_name", "threshold", "comparator", "message", "cooldown_seconds")


def _casefold(text):
    return text.casefold() if text is not None else None


class Database:
    def __init__(self, db_path="data/metricwatch.db"):
        self.db_path = db_path
        self.conn = None
        self._lock = threading.RLock()
        self._in_transaction = False

    def connect(self):
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.create_function("casefold", 1, _casefold, deterministic=True)
            self.conn.execute("PRAGMA journal_mode=WAL")
            self._create_tables()
        except sqlite3.Error as e:
            logger.error(f"Could not open database {self.db_path}: {e}")
            raise StorageError(f"Could not open database {self.db_path}") from e
        return self

    def close(self):
        if self.conn:
            self.conn.close()
            self.conn = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *args):
        self.close()

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS metrics (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                metric_name TEXT NOT NULL,
                value REAL NOT NULL,
                recorded_at TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_metrics_user_name
                ON metrics(user_id, metric_name);

            CREATE TABLE IF NOT EXISTS alerts (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                metric_name TEXT NOT NULL,
                threshold REAL NOT NULL,
                comparator TEXT NOT NULL,
                message TEXT NOT NULL,
                cooldown_seconds REAL NOT NULL DEFAULT 0 CHECK (cooldown_seconds >= 0),
                last_triggered_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_alerts_user
                ON alerts(user_id);

            CREATE TABLE IF NOT EXISTS alert_events (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                alert_id TEXT NOT NULL,
                metric_name TEXT NOT NULL,
                metric_value REAL NOT NULL,
                timestamp TEXT NOT NULL,
                alert_message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_user_timestamp
                ON alert_events(user_id, timestamp);
        """)
        self.conn.commit()

    # --- Transactions ---

    @contextmanager
    def transaction(self):
        """Run the enclosed writes as one atomic unit. Nested calls join the outer one."""
        with self._lock:
            if self._in_transaction:
                yield self
                return
            self._in_transaction = True
            try:
                yield self
                self.conn.commit()
            except sqlite3.Error as e:
                self.conn.rollback()
                logger.error(f"Transaction rolled back: {e}")
                raise StorageError("Transaction failed") from e
            except BaseException:
                self.conn.rollback()
                raise
            finally:
                self._in_transaction = False

    @contextmanager
    def _guard(self, action):
        with self._lock:
            try:
                yield
            except sqlite3.Error as e:
                logger.error(f"Database error during {action}: {e}")
                if not self._in_transaction:
                    self.conn.rollback()
                raise StorageError(f"Database error during {action}") from e

    def _commit(self):
        if not self._in_transaction:
            self.conn.commit()

    # --- Metric Samples ---

    def insert_metric(self, user_id, metric_name, value, recorded_at):
        sample = MetricSample(
            id=str(uuid.uuid4()),
            user_id=user_id,
            metric_name=metric_name,
            value=value,
            recorded_at=recorded_at,
            created_at=to_iso(utc_now()),
        )
        with self._guard("insert metric"):
            self.conn.execute("""
                INSERT INTO metrics (id, user_id, metric_name, value, recorded_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (sample.id, sample.user_id, sample.metric_name, sample.value,
                  sample.recorded_at, sample.created_at))
            self._commit()
        logger.debug(f"Saved sample {metric_name}={value} at {recorded_at}")
        return sample

    def get_recent_metrics(self, user_id, metric_name=None, limit=50):
        query = "SELECT * FROM metrics WHERE user_id = ?"
        params = [user_id]
        if metric_name:
            query += " AND casefold(metric_name) = casefold(?)"
            params.append(metric_name)
        query += " ORDER BY recorded_at DESC, id DESC LIMIT ?"
        params.append(limit)
        with self._guard("list metrics"):
            rows = self.conn.execute(query, params).fetchall()
        return [MetricSample.from_dict(dict(r)) for r in rows]

    def get_metric_names(self, user_id, limit=5000):
        """Metric names from the ``limit`` most recent sample rows (duplicates included)."""
        with self._guard("scan metric names"):
            rows = self.conn.execute(
                "SELECT metric_name FROM metrics WHERE user_id = ? "
                "ORDER BY recorded_at DESC, id DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [r["metric_name"] for r in rows]

    # --- Alert Rules ---

    def insert_rule(self, user_id, metric_name, threshold, comparator, message,
                    cooldown_seconds=0, created_at=None):
        rule_id = str(uuid.uuid4())
        created_at = created_at or to_iso(utc_now())
        comp = comparator.value if hasattr(comparator, "value") else comparator
        with self._guard("insert rule"):
            self.conn.execute("""
                INSERT INTO alerts
                (id, user_id, metric_name, threshold, comparator, message,
                 cooldown_seconds, last_triggered_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, NULL, ?, ?)
            """, (rule_id, user_id, metric_name, threshold, comp, message,
                  cooldown_seconds, created_at, created_at))
            self._commit()
        return self.get_rule(rule_id, user_id)

    def get_rule(self, rule_id, user_id):
        with self._guard("get rule"):
            row = self.conn.execute(
                "SELECT * FROM alerts WHERE id = ? AND user_id = ?", (rule_id, user_id)
            ).fetchone()
        return AlertRule.from_dict(dict(row)) if row else None

    def list_rules(self, user_id):
        with self._guard("list rules"):
            rows = self.conn.execute("""
                SELECT * FROM alerts WHERE user_id = ?
                ORDER BY created_at DESC, id DESC
            """, (user_id,)).fetchall()
        return [AlertRule.from_dict(dict(r)) for r in rows]

    def find_rules_by_metric_name(self, user_id, metric_name):
        """Rules whose metric name equals ``metric_name`` ignoring case."""
        with self._guard("find rules"):
            rows = self.conn.execute("""
                SELECT * FROM alerts
                WHERE user_id = ? AND casefold(metric_name) = casefold(?)
            """, (user_id, metric_name)).fetchall()
        return [AlertRule.from_dict(dict(r)) for r in rows]

    def get_rule_metric_names(self, user_id):
        with self._guard("scan rule metric names"):
            rows = self.conn.execute(
                "SELECT metric_name FROM alerts WHERE user_id = ?", (user_id,)
            ).fetchall()
        return [r["metric_name"] for r in rows]

    def update_rule(self, rule_id, user_id, fields, updated_at=None):
        """Apply a partial update. Returns the updated rule, or None if no row matched."""
        unknown = set(fields) - set(RULE_COLUMNS)
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")
        updated_at = updated_at or to_iso(utc_now())
        assignments = [f"{col} = ?" for col in fields]
        params = [v.value if hasattr(v, "value") else v for v in fields.values()]
        assignments.append("updated_at = ?")
        params.extend([updated_at, rule_id, user_id])
        with self._guard("update rule"):
            cur = self.conn.execute(
                f"UPDATE alerts SET {', '.join(assignments)} WHERE id = ? AND user_id = ?",
                params,
            )
            self._commit()
        if cur.rowcount == 0:
            return None
        return self.get_rule(rule_id, user_id)

    def update_trigger_state(self, rule_id, user_id, timestamp, expected=_ANY):
        """Set last_triggered_at and updated_at to ``timestamp``.

        When ``expected`` is given the write only happens if last_triggered_at
        still holds that value (None matches NULL). Returns the updated rule,
        or None when no row matched.
        """
        query = """
            UPDATE alerts SET last_triggered_at = ?, updated_at = ?
            WHERE id = ? AND user_id = ?
        """
        params = [timestamp, timestamp, rule_id, user_id]
        if expected is not _ANY:
            query += " AND last_triggered_at IS ?"
            params.append(expected)
        with self._guard("update trigger state"):
            cur = self.conn.execute(query, params)
            self._commit()
        if cur.rowcount == 0:
            return None
        return self.get_rule(rule_id, user_id)

    def delete_rule(self, rule_id, user_id):
        with self._guard("delete rule"):
            cur = self.conn.execute(
                "DELETE FROM alerts WHERE id = ? AND user_id = ?", (rule_id, user_id)
            )
            self._commit()
        return cur.rowcount > 0

    # --- Alert Events ---

    def insert_event(self, user_id, alert_id, metric_name, metric_value, timestamp, alert_message):
        event = AlertEvent(
            id=str(uuid.uuid4()),
            user_id=user_id,
            alert_id=alert_id,
            metric_name=metric_name,
            metric_value=metric_value,
            timestamp=timestamp,
            alert_message=alert_message,
        )
        with self._guard("insert alert event"):
            self.conn.execute("""
                INSERT INTO alert_events
                (id, user_id, alert_id, metric_name, metric_value, timestamp, alert_message)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (event.id, event.user_id, event.alert_id, event.metric_name,
                  event.metric_value, event.timestamp, event.alert_message))
            self._commit()
        return event

    def list_events(self, user_id, metric_name=None, alert_id=None, before=None, limit=50):
        """Events newest first. ``before`` is an exclusive timestamp bound."""
        query = "SELECT * FROM alert_events WHERE user_id = ?"
        params = [user_id]
        if metric_name:
            query += " AND instr(casefold(metric_name), casefold(?)) > 0"
            params.append(metric_name)
        if alert_id:
            query += " AND alert_id = ?"
            params.append(alert_id)
        if before:
            query += " AND timestamp < ?"
            params.append(before)
        query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)
        with self._guard("list alert events"):
            rows = self.conn.execute(query, params).fetchall()
        return [AlertEvent.from_dict(dict(r)) for r in rows]
