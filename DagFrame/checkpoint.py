"""
Bounded recomputation for the round loop.

Every round's vertex table is derived from the previous one, so its lineage
grows by a few operations per round. CheckpointPolicy decides on which
rounds to cut it; CheckpointStore does the cut by writing the realised
frame to SQLite and handing back a table that reads only from storage.

Only the latest checkpoint is kept: writing round n deletes every older
round, so storage stays bounded however long the run.
"""

import os
import pickle
import shutil
import sqlite3
import tempfile

from .table import Table

CHECKPOINT_DB_NAME = "pregel_checkpoints.db"


class CheckpointPolicy:
    """Checkpoint on every `interval`-th round; interval 0 disables."""

    def __init__(self, interval):
        self.interval = interval

    @property
    def enabled(self):
        return self.interval > 0

    def should_checkpoint(self, superstep):
        return self.enabled and superstep % self.interval == 0

    def __repr__(self):
        return f"CheckpointPolicy(interval={self.interval})"


class CheckpointStore:
    """
    SQLite-backed durable materialization of tables.

    Args:
        directory: Where to keep the database. When None, a temporary
            directory is created on first use and removed by close().
        debug: Print checkpoint activity
    """

    def __init__(self, directory=None, debug=False):
        self._directory = directory
        self._owns_directory = directory is None
        self.debug = debug

    @property
    def directory(self):
        if self._directory is None:
            self._directory = tempfile.mkdtemp(prefix="pregel_")
        return self._directory

    @property
    def path(self):
        return os.path.join(self.directory, CHECKPOINT_DB_NAME)

    def _connect(self):
        os.makedirs(self.directory, exist_ok=True)
        conn = sqlite3.connect(self.path)
        conn.execute(
            "CREATE TABLE IF NOT EXISTS pregel_checkpoint (superstep INTEGER PRIMARY KEY, data BLOB)"
        )
        return conn

    def checkpoint(self, table, superstep):
        """
        Realise `table`, persist it and return a lineage-free table over the stored copy.

        Older checkpoints are deleted once the new one is committed.
        """
        serialized = pickle.dumps(table.collect())
        conn = self._connect()
        try:
            conn.execute(
                "REPLACE INTO pregel_checkpoint (superstep, data) VALUES (?, ?)", (superstep, serialized)
            )
            removed = conn.execute(
                "DELETE FROM pregel_checkpoint WHERE superstep < ?", (superstep,)
            ).rowcount
            conn.commit()
        finally:
            conn.close()

        if self.debug:
            print(f"\033[33m[CHECKPOINT] Round {superstep} saved to {self.path}\033[0m")
            if removed:
                print(f"\033[33m[CHECKPOINT] Removed {removed} stale checkpoint(s)\033[0m")

        return Table.from_frame(self.load(superstep), name=f"checkpoint_{superstep}")

    def load(self, superstep):
        """Load a stored checkpoint as a DataFrame. Raises KeyError when absent."""
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT data FROM pregel_checkpoint WHERE superstep=?", (superstep,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise KeyError(f"No checkpoint for round {superstep}")
        return pickle.loads(row[0])

    def list_checkpoints(self):
        """Rounds that currently have a stored checkpoint, ascending."""
        if self._directory is None or not os.path.exists(self.path):
            return []
        conn = self._connect()
        try:
            rows = conn.execute("SELECT superstep FROM pregel_checkpoint ORDER BY superstep").fetchall()
        finally:
            conn.close()
        return [r[0] for r in rows]

    def clear(self):
        """Delete every stored checkpoint."""
        if self._directory is None or not os.path.exists(self.path):
            return
        conn = self._connect()
        try:
            conn.execute("DELETE FROM pregel_checkpoint")
            conn.commit()
        finally:
            conn.close()

    def close(self):
        """Remove stored checkpoints, and the directory itself when this store created it."""
        if self._directory is None:
            return
        if self._owns_directory:
            shutil.rmtree(self._directory, ignore_errors=True)
            self._directory = None
        else:
            self.clear()
