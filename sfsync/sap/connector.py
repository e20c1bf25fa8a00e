"""
SAP Source Connector

Executes the authoritative query against the SAP database through
SQLAlchemy. The default URL targets SAP HANA via the sqlalchemy-hana
dialect; any SQLAlchemy URL works, which keeps tests on SQLite.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, URL
from sqlalchemy.exc import SQLAlchemyError

from sfsync.reconciliation.errors import SourceQueryError

logger = logging.getLogger(__name__)


class SapConnector:
    """Source query executor backed by a SQLAlchemy engine."""

    def __init__(self, engine: Engine):
        self._engine = engine

    @classmethod
    def from_settings(
        cls,
        url: Optional[str] = None,
        host: Optional[str] = None,
        port: int = 30015,
        database: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        drivername: str = "hana+hdbcli",
        **engine_options: Any
    ) -> "SapConnector":
        """
        Build a connector from a URL or from discrete connection settings.

        Args:
            url: Full SQLAlchemy URL (takes precedence)
            host: SAP HANA host
            port: SAP HANA SQL port
            database: Tenant database / company schema
            user: Database user
            password: Database password
            drivername: SQLAlchemy dialect+driver
            **engine_options: Extra keyword arguments for create_engine

        Raises:
            ValueError: If neither a URL nor a host is provided
        """
        if url:
            target = url
        elif host:
            target = URL.create(
                drivername,
                username=user,
                password=password,
                host=host,
                port=port,
                database=database
            )
        else:
            raise ValueError("SAP connection requires either a URL or a host")

        engine = create_engine(target, **engine_options)
        logger.info(f"Configured SAP engine for {engine.url.render_as_string(hide_password=True)}")
        return cls(engine)

    def execute_query(self, sql: str) -> List[Dict[str, Any]]:
        """
        Execute one query and return every row.

        Args:
            sql: SQL text

        Returns:
            Rows as dictionaries with column order preserved

        Raises:
            SourceQueryError: On connection or SQL errors
        """
        logger.debug(f"Executing SAP query: {sql}")

        try:
            with self._engine.connect() as conn:
                result = conn.execute(text(sql))
                rows = [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            logger.error(f"SAP query failed: {e}")
            raise SourceQueryError(f"SAP query failed: {e}") from e

        logger.info(f"Fetched {len(rows)} rows from SAP")
        return rows

    def dispose(self) -> None:
        """Release pooled connections."""
        self._engine.dispose()
        logger.debug("SAP engine disposed")
