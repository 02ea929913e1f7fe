"""
Database operations for MySQL and PostgreSQL servers.

Queries go through SQLAlchemy (psycopg2 / PyMySQL drivers). Dumps and
restores still use the vendor tools (pg_dump, mysqldump, psql, mysql),
which have no library equivalent.
"""

import gzip
import logging
import re
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from opskit.core.exceptions import PreconditionError, ToolError, UsageError
from opskit.core.runner import require_tool, run_tool, stream_tool
from opskit.core.utils import file_timestamp
from opskit.database.engine import get_connection
from opskit.database.profile import DatabaseProfile, DbType

logger = logging.getLogger(__name__)

BACKUP_NAME_PATTERN = re.compile(r"^(?P<db>.+)_\d{8}_\d{6}\.sql(\.gz)?$")


class QueryResult(BaseModel):
    """Rows returned by a statement, or the affected row count."""
    columns: List[str] = Field(default_factory=list)
    rows: List[Tuple[Any, ...]] = Field(default_factory=list)
    rowcount: int = -1

    @property
    def returns_rows(self) -> bool:
        return bool(self.columns)


def database_from_backup(backup_file: Path) -> str:
    """
    Database name encoded in a backup file name.

    ``shop_orders_20240131_142501.sql.gz`` -> ``shop_orders``
    """
    name = Path(backup_file).name
    match = BACKUP_NAME_PATTERN.match(name)
    if match:
        return match.group("db")
    stem = name[:-3] if name.endswith(".gz") else name
    return stem[:-4] if stem.endswith(".sql") else stem


class DatabaseManager:
    """Runs one operation against the server described by a profile."""

    def __init__(self, profile: DatabaseProfile, backup_dir: Path):
        self.profile = profile
        self.backup_dir = Path(backup_dir)

    @property
    def label(self) -> str:
        return self.profile.db_type.label

    def _execute(self, statement: str, database: Optional[str] = None, params=None) -> QueryResult:
        try:
            with get_connection(self.profile, database) as conn:
                result = conn.execute(text(statement), params or {})
                if result.returns_rows:
                    columns = list(result.keys())
                    rows = [tuple(row) for row in result.fetchall()]
                    return QueryResult(columns=columns, rows=rows, rowcount=len(rows))
                conn.commit()
                return QueryResult(rowcount=result.rowcount)
        except SQLAlchemyError as e:
            raise ToolError(f"{self.label} query failed", output=str(getattr(e, "orig", None) or e))

    def test_connection(self) -> str:
        """Run ``SELECT 1`` and return the server version string."""
        self._execute("SELECT 1")
        version = self._execute("SELECT VERSION()")
        return str(version.rows[0][0]) if version.rows else "unknown"

    def list_databases(self) -> List[str]:
        if self.profile.db_type is DbType.MYSQL:
            result = self._execute("SHOW DATABASES")
        else:
            result = self._execute(
                "SELECT datname FROM pg_database WHERE NOT datistemplate ORDER BY datname"
            )
        return [str(row[0]) for row in result.rows]

    def list_tables(self, database: str) -> List[str]:
        if self.profile.db_type is DbType.MYSQL:
            result = self._execute("SHOW TABLES", database)
        else:
            result = self._execute(
                "SELECT schemaname || '.' || tablename FROM pg_catalog.pg_tables "
                "WHERE schemaname NOT IN ('pg_catalog', 'information_schema') "
                "ORDER BY schemaname, tablename",
                database,
            )
        return [str(row[0]) for row in result.rows]

    def run_query(self, database: str, query: str) -> QueryResult:
        if not query.strip():
            raise UsageError("Query required")
        return self._execute(query, database)

    def monitor(self, database: str) -> List[Tuple[str, QueryResult]]:
        """Status sections shown by ``db monitor``: (title, result) pairs."""
        if self.profile.db_type is DbType.MYSQL:
            return [
                ("Connections", self._execute("SHOW STATUS LIKE 'Connections'", database)),
                ("Uptime", self._execute("SHOW STATUS LIKE 'Uptime'", database)),
                ("Queries", self._execute("SHOW STATUS LIKE 'Queries'", database)),
                ("Active Processes", self._execute("SHOW PROCESSLIST", database)),
            ]
        params = {"name": database}
        return [
            (
                "PostgreSQL Statistics",
                self._execute(
                    "SELECT numbackends, xact_commit, xact_rollback, blks_read, blks_hit, "
                    "tup_returned, tup_fetched, tup_inserted, tup_updated, tup_deleted "
                    "FROM pg_stat_database WHERE datname = :name",
                    database,
                    params,
                ),
            ),
            (
                "Active Connections",
                self._execute(
                    "SELECT pid, usename, application_name, client_addr, state, query_start "
                    "FROM pg_stat_activity WHERE datname = :name",
                    database,
                    params,
                ),
            ),
        ]

    def _dump_command(self, database: str) -> List[str]:
        p = self.profile
        if p.db_type is DbType.MYSQL:
            return ["mysqldump", "-h", p.host, "-P", str(p.port), "-u", p.user, database]
        return ["pg_dump", "-h", p.host, "-p", str(p.port), "-U", p.user, database]

    def _client_command(self, database: str) -> List[str]:
        p = self.profile
        if p.db_type is DbType.MYSQL:
            return ["mysql", "-h", p.host, "-P", str(p.port), "-u", p.user, database]
        return ["psql", "-h", p.host, "-p", str(p.port), "-U", p.user, "-d", database]

    def backup(self, database: str) -> Path:
        """
        Dump ``database`` to ``<backup_dir>/<db>_<timestamp>.sql.gz``.
        """
        command = self._dump_command(database)
        require_tool(command[0])
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        backup_file = self.backup_dir / f"{database}_{file_timestamp()}.sql.gz"
        partial = backup_file.with_name(backup_file.name + ".part")

        try:
            with gzip.open(partial, "wb") as f:
                result = stream_tool(command, f, env=self.profile.password_env())
            if not result.ok:
                raise ToolError(
                    f"{self.label} backup failed",
                    returncode=result.returncode,
                    output=result.stderr.strip() or None,
                    args=command,
                )
            partial.replace(backup_file)
        except OSError as e:
            raise ToolError(f"{self.label} backup failed: {e}", args=command) from e
        finally:
            partial.unlink(missing_ok=True)
        return backup_file

    def restore(self, backup_file: Path, database: Optional[str] = None) -> str:
        """
        Feed a (possibly gzipped) SQL dump to the server's client tool.

        Returns:
            The database restored into.
        """
        backup_file = Path(backup_file)
        if not backup_file.is_file():
            raise PreconditionError(f"Backup file not found: {backup_file}")
        database = database or database_from_backup(backup_file)

        if backup_file.suffix == ".gz":
            with gzip.open(backup_file, "rt", encoding="utf-8") as f:
                sql = f.read()
        else:
            sql = backup_file.read_text(encoding="utf-8")

        command = self._client_command(database)
        require_tool(command[0])
        result = run_tool(command, input=sql, env=self.profile.password_env())
        if not result.ok:
            raise ToolError(
                f"{self.label} restore failed",
                returncode=result.returncode,
                output=result.output or None,
                args=command,
            )
        return database


def format_rows(result: QueryResult) -> Sequence[Sequence[str]]:
    """Stringify cells for table rendering; NULL shown as empty."""
    return [["" if cell is None else str(cell) for cell in row] for row in result.rows]
