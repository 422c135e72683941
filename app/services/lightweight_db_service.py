"""
Lightweight Database Service - Direct SQL Queries
================================================
Direct asyncpg access to the survey response store.
Raw SQL, plain dict rows, no ORM.
"""

import json
import asyncpg
from typing import Dict, List, Any, Optional
from contextlib import asynccontextmanager

from app.core.config import settings
from app.exceptions.survey_exceptions import StoreQueryError
from app.utils.logging import get_logger

logger = get_logger(__name__)


class LightweightDBService:
    """
    Survey response store backed by an asyncpg connection pool
    """

    def __init__(self, dsn: str = None, min_size: int = None, max_size: int = None):
        self.pool: Optional[asyncpg.Pool] = None
        self._connection_string = dsn or settings.database_url
        self._min_size = min_size or settings.database_pool_min_size
        self._max_size = max_size or settings.database_pool_max_size

    async def _setup_connection(self, conn):
        """Decode json/jsonb columns into Python values and bound statement time"""
        for type_name in ("json", "jsonb"):
            await conn.set_type_codec(
                type_name,
                encoder=json.dumps,
                decoder=json.loads,
                schema="pg_catalog"
            )
        await conn.execute(f"SET statement_timeout = '{settings.database_statement_timeout}s'")

    async def initialize(self):
        """Initialize connection pool"""
        if self.pool is None:
            self.pool = await asyncpg.create_pool(
                self._connection_string,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=settings.database_statement_timeout,
                max_inactive_connection_lifetime=300,
                setup=self._setup_connection
            )
            logger.info(f"DB pool initialized: {self._min_size}-{self._max_size} connections")

    async def close(self):
        """Close connection pool"""
        if self.pool:
            await self.pool.close()
            self.pool = None

    def get_pool_stats(self) -> Dict[str, Any]:
        """Get connection pool statistics"""
        if not self.pool:
            return {"error": "Pool not initialized"}

        return {
            "min_size": self.pool.get_min_size(),
            "max_size": self.pool.get_max_size(),
            "current_size": self.pool.get_size(),
            "idle_connections": self.pool.get_idle_size(),
            "status": "healthy" if self.pool.get_size() > 0 else "degraded"
        }

    @asynccontextmanager
    async def get_connection(self):
        """Get database connection from pool"""
        if not self.pool:
            await self.initialize()

        async with self.pool.acquire() as connection:
            yield connection

    async def execute_query(self, query: str, params: List[Any] = None) -> List[Dict[str, Any]]:
        """Execute SELECT query and return results as list of dicts"""
        async with self.get_connection() as conn:
            if params:
                rows = await conn.fetch(query, *params)
            else:
                rows = await conn.fetch(query)

            # Convert asyncpg Records to dicts
            return [dict(row) for row in rows]

    async def execute_fetchrow(self, query: str, params: List[Any] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return single row"""
        async with self.get_connection() as conn:
            if params:
                row = await conn.fetchrow(query, *params)
            else:
                row = await conn.fetchrow(query)

            return dict(row) if row else None

    async def _run_query(self, query_name: str, query: str, params: List[Any] = None) -> List[Dict[str, Any]]:
        try:
            rows = await self.execute_query(query, params)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Store query {query_name} failed: {str(e)}")
            raise StoreQueryError(
                f"Failed to fetch {query_name.replace('_', ' ')}",
                query_name=query_name,
                details={"error": str(e)}
            ) from e
        logger.debug(f"Store query {query_name} returned {len(rows)} rows")
        return rows

    async def ping(self) -> bool:
        row = await self.execute_fetchrow("SELECT 1 AS ok")
        return bool(row and row.get("ok") == 1)

    # ==========================================
    # SURVEY RESPONSE QUERIES
    # ==========================================

    async def list_question_answers(self, configuration_id: str = None) -> List[Dict[str, Any]]:
        """Normalized answers joined with their question metadata, newest first"""
        query = """
        SELECT qr.response_id, qr.question_id, qr.configuration_id, qr.answer_value, qr.created_at,
               qc.question_id AS config_question_id, qc.question_type AS config_question_type,
               qc.question_key, qc.section
        FROM survey_question_responses qr
        LEFT JOIN survey_question_config qc ON qc.id = qr.question_id
        """
        params = []
        if configuration_id:
            query += " WHERE qr.configuration_id = $1"
            params.append(configuration_id)
        query += " ORDER BY qr.created_at DESC"

        return await self._run_query("question_answers", query, params)

    async def list_submission_metadata(self, configuration_id: str = None) -> List[Dict[str, Any]]:
        """Finalized submissions from the legacy table, newest first"""
        query = """
        SELECT id, session_id, continent, division, role, submitted_at,
               completion_time_seconds, is_draft, configuration_id, follow_up_responses
        FROM employee_survey_responses
        WHERE is_draft = false
        """
        params = []
        if configuration_id:
            query += " AND configuration_id = $1"
            params.append(configuration_id)
        query += " ORDER BY submitted_at DESC"

        return await self._run_query("submission_metadata", query, params)

    async def list_filtered_submissions(
        self,
        continent: str = None,
        division: str = None,
        role: str = None,
        limit: int = 200
    ) -> List[Dict[str, Any]]:
        """Finalized submissions matching every given demographic filter, newest first"""
        conditions = ["is_draft = false"]
        params: List[Any] = []
        for column, value in (("continent", continent), ("division", division), ("role", role)):
            if value:
                params.append(value)
                conditions.append(f"{column} = ${len(params)}")
        params.append(limit)

        query = f"""
        SELECT id, responses_jsonb, continent, division, role, created_at, submitted_at
        FROM employee_survey_responses
        WHERE {' AND '.join(conditions)}
        ORDER BY submitted_at DESC
        LIMIT ${len(params)}
        """
        return await self._run_query("survey_data", query, params)

    async def list_legacy_responses(self, configuration_id: str = None) -> List[Dict[str, Any]]:
        """Full legacy rows for finalized submissions, newest first"""
        query = "SELECT * FROM employee_survey_responses WHERE is_draft = false"
        params = []
        if configuration_id:
            query += " AND configuration_id = $1"
            params.append(configuration_id)
        query += " ORDER BY submitted_at DESC"

        return await self._run_query("legacy_responses", query, params)


# Global instance
lightweight_db = LightweightDBService()


async def get_lightweight_db() -> LightweightDBService:
    """Dependency injection for FastAPI"""
    return lightweight_db
