from __future__ import annotations

from datetime import datetime, timedelta

import mysql.connector


class TickClock:
    """Wall clock that advances one second per call."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


class FakeMonotonic:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def login(client, username: str, password: str):
    return client.post("/api/login", json={"username": username, "password": password})


class ScriptedCursor:
    """DB-API cursor double. Each fetch returns the next scripted result in order."""

    def __init__(self, results, *, fail_on: str | None = None, lastrowid: int | None = None):
        self.results = list(results)
        self.executed: list[tuple[str, tuple]] = []
        self.fail_on = fail_on
        self.lastrowid = lastrowid
        self.closed = False

    def execute(self, sql, params=()):
        statement = " ".join(sql.split())
        if self.fail_on and self.fail_on in statement:
            raise mysql.connector.errors.OperationalError(msg="Lost connection to MySQL server")
        self.executed.append((statement, tuple(params)))

    def fetchone(self):
        return self.results.pop(0)

    def fetchall(self):
        return self.results.pop(0)

    def close(self):
        self.closed = True

    def statements(self, prefix: str) -> list[tuple[str, tuple]]:
        return [(sql, params) for sql, params in self.executed if sql.startswith(prefix)]


class ScriptedConnection:
    def __init__(self, cursor: ScriptedCursor):
        self._cursor = cursor
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def cursor(self, dictionary=False):
        return self._cursor

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


class ScriptedConnectionFactory:
    """Stands in for DatabaseConnection; every connect() hands out the same scripted cursor."""

    def __init__(self, results=(), **cursor_options):
        self.cursor = ScriptedCursor(results, **cursor_options)
        self.connections: list[ScriptedConnection] = []

    def connect(self):
        conn = ScriptedConnection(self.cursor)
        self.connections.append(conn)
        return conn

    @property
    def last(self) -> ScriptedConnection:
        return self.connections[-1]
