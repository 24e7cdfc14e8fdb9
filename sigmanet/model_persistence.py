"""
model_persistence.py
~~~~~~~~~~~~~~~~~~~~

SQLite-based model store for trained networks.

Each row keeps the network's JSON document (see ``serialization``) next to
queryable metadata, so stored networks stay human-readable and never go
through pickle. The module-level functions are what the server uses: they
log failures and return ``False``, ``None``, ``[]`` or ``-1`` instead of
raising.
"""

import json
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

from sigmanet import serialization
from sigmanet.errors import FormatError
from sigmanet.network import Network

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_MODEL_DIR = 'models'
DB_FILENAME = 'networks.db'

_SCHEMA = (
    '''
    CREATE TABLE IF NOT EXISTS networks (
        network_id TEXT PRIMARY KEY,
        architecture TEXT NOT NULL,
        learning_rate REAL NOT NULL,
        network_data TEXT NOT NULL,
        trained INTEGER NOT NULL DEFAULT 0,
        accuracy REAL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''',
    'CREATE INDEX IF NOT EXISTS idx_trained ON networks(trained)',
    'CREATE INDEX IF NOT EXISTS idx_created_at ON networks(created_at DESC)',
)

# created_at keeps its first value on conflict
_UPSERT = '''
    INSERT INTO networks
        (network_id, architecture, learning_rate, network_data,
         trained, accuracy, updated_at)
    VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
    ON CONFLICT(network_id) DO UPDATE SET
        architecture = excluded.architecture,
        learning_rate = excluded.learning_rate,
        network_data = excluded.network_data,
        trained = excluded.trained,
        accuracy = excluded.accuracy,
        updated_at = CURRENT_TIMESTAMP
'''

_METADATA_SELECT = '''
    SELECT network_id, architecture, learning_rate, trained, accuracy,
           created_at, updated_at
    FROM networks
'''


def _metadata(row: sqlite3.Row) -> Dict[str, Any]:
    architecture = json.loads(row['architecture'])
    return {
        'network_id': row['network_id'],
        'architecture': architecture,
        'weights_shape': [
            [rows, columns]
            for columns, rows in zip(architecture, architecture[1:])
        ],
        'learning_rate': row['learning_rate'],
        'trained': bool(row['trained']),
        'accuracy': row['accuracy'],
        'created_at': row['created_at'],
        'updated_at': row['updated_at']
    }


class NetworkStore:
    """
    The ``networks`` table of ``<model_dir>/networks.db``.

    The directory and schema are created on first use. Methods raise
    ``sqlite3.Error`` on database failures and ``FormatError`` when a stored
    document no longer parses.
    """

    def __init__(self, model_dir: str = DEFAULT_MODEL_DIR):
        if model_dir:
            os.makedirs(model_dir, exist_ok=True)
        self.db_path = os.path.join(model_dir, DB_FILENAME)
        with self._connect() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and rolls back on error."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def save(
        self,
        network: Network,
        network_id: str,
        trained: bool = True,
        accuracy: Optional[float] = None
    ) -> None:
        """
        Insert or replace ``network_id``.

        Raises:
            ValueError: If accuracy is given and lies outside [0, 1]
        """
        if accuracy is not None and not 0.0 <= accuracy <= 1.0:
            raise ValueError(f"accuracy must lie in [0, 1], got {accuracy}")

        with self._connect() as conn:
            conn.execute(_UPSERT, (
                network_id,
                json.dumps(network.sizes),
                network.learning_rate,
                serialization.dumps(network),
                int(bool(trained)),
                accuracy
            ))
        logger.info(
            f"Stored network '{network_id}' {network.sizes} "
            f"(trained={trained}, accuracy={accuracy})"
        )

    def load(self, network_id: str) -> Optional[Network]:
        with self._connect() as conn:
            row = conn.execute(
                'SELECT network_data FROM networks WHERE network_id = ?',
                (network_id,)
            ).fetchone()
        if row is None:
            logger.warning(f"No stored network '{network_id}'")
            return None
        return serialization.loads(row['network_data'])

    def metadata(self, network_id: str) -> Optional[Dict[str, Any]]:
        """Metadata of one network, without parsing its weights."""
        with self._connect() as conn:
            row = conn.execute(
                _METADATA_SELECT + ' WHERE network_id = ?', (network_id,)
            ).fetchone()
        return None if row is None else _metadata(row)

    def list_metadata(self) -> List[Dict[str, Any]]:
        """Metadata of every stored network, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                _METADATA_SELECT + ' ORDER BY created_at DESC'
            ).fetchall()
        return [_metadata(row) for row in rows]

    def delete(self, network_id: str) -> bool:
        with self._connect() as conn:
            deleted = conn.execute(
                'DELETE FROM networks WHERE network_id = ?', (network_id,)
            ).rowcount > 0
        if deleted:
            logger.info(f"Deleted stored network '{network_id}'")
        return deleted

    def delete_older_than(self, days: int) -> int:
        """
        Remove networks created more than ``days`` days ago.

        Raises:
            ValueError: If days is negative
        """
        if days < 0:
            raise ValueError(f"days must be non-negative, got {days}")

        with self._connect() as conn:
            deleted = conn.execute(
                "DELETE FROM networks WHERE created_at < datetime('now', ?)",
                (f'-{days} days',)
            ).rowcount
        logger.info(f"Removed {deleted} network(s) older than {days} day(s)")
        return deleted


def _with_store(
    action: str,
    model_dir: str,
    operation: Callable[[NetworkStore], T],
    fallback: T
) -> T:
    try:
        return operation(NetworkStore(model_dir))
    except (FormatError, json.JSONDecodeError) as e:
        logger.error(f"Corrupt stored data while {action}: {e}")
    except (sqlite3.Error, OSError) as e:
        logger.error(f"Model store error while {action}: {e}")
    return fallback


def _valid_network_id(network_id: Any) -> bool:
    if isinstance(network_id, str) and network_id:
        return True
    logger.error(f"Invalid network_id {network_id!r}: expected a non-empty string")
    return False


def save_network(
    network: Network,
    network_id: str,
    model_dir: str = DEFAULT_MODEL_DIR,
    trained: bool = True,
    accuracy: Optional[float] = None
) -> bool:
    """Store ``network``. Returns False if it could not be saved."""
    if not _valid_network_id(network_id):
        return False

    def save(store: NetworkStore) -> bool:
        store.save(network, network_id, trained, accuracy)
        return True

    try:
        return _with_store(f"saving '{network_id}'", model_dir, save, False)
    except ValueError as e:
        logger.error(f"Refusing to save network '{network_id}': {e}")
        return False


def load_network(
    network_id: str,
    model_dir: str = DEFAULT_MODEL_DIR
) -> Optional[Network]:
    """Load a stored network, or None if it is missing or unreadable."""
    if not _valid_network_id(network_id):
        return None
    return _with_store(
        f"loading '{network_id}'", model_dir,
        lambda store: store.load(network_id), None
    )


def list_saved_networks(model_dir: str = DEFAULT_MODEL_DIR) -> List[Dict[str, Any]]:
    return _with_store(
        "listing networks", model_dir, NetworkStore.list_metadata, []
    )


def delete_network(network_id: str, model_dir: str = DEFAULT_MODEL_DIR) -> bool:
    if not _valid_network_id(network_id):
        return False
    return _with_store(
        f"deleting '{network_id}'", model_dir,
        lambda store: store.delete(network_id), False
    )


def get_network_metadata(
    network_id: str,
    model_dir: str = DEFAULT_MODEL_DIR
) -> Optional[Dict[str, Any]]:
    if not _valid_network_id(network_id):
        return None
    return _with_store(
        f"reading metadata of '{network_id}'", model_dir,
        lambda store: store.metadata(network_id), None
    )


def delete_old_networks(days: int = 2, model_dir: str = DEFAULT_MODEL_DIR) -> int:
    """
    Delete stored networks older than ``days`` days.

    Returns:
        Number of deleted networks, or -1 if the store failed

    Raises:
        ValueError: If days is negative
    """
    if days < 0:
        raise ValueError(f"days must be non-negative, got {days}")
    return _with_store(
        "removing old networks", model_dir,
        lambda store: store.delete_older_than(days), -1
    )
