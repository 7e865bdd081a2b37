"""
college_fees/db/supabase.py
Supabase client configuration and helper functions
"""
from supabase import create_client, Client
from college_fees.core.config import settings
from college_fees.core.errors import StorageFailure
from functools import lru_cache
from typing import Optional, Dict, List, Any, Iterable, Callable, Sequence, Union
import logging

logger = logging.getLogger(__name__)

# ============================================
# CLIENT FACTORY FUNCTIONS
# ============================================

@lru_cache()
def get_supabase_admin_client() -> Client:
    """
    Get Supabase admin client with service role key
    The ledger writes through this client so Row Level Security never
    hides a student row from the scope checks.
    """
    try:
        supabase: Client = create_client(
            supabase_url=settings.SUPABASE_URL,
            supabase_key=settings.SUPABASE_SERVICE_KEY
        )
        logger.info("Supabase admin client created successfully")
        return supabase
    except Exception as e:
        logger.error(f"Failed to create Supabase admin client: {e}")
        raise StorageFailure(f"Supabase admin connection failed: {str(e)}") from e


# ============================================
# HELPER CLASS FOR COMMON QUERIES
# ============================================

class SupabaseQueries:
    """
    Helper class for common Supabase database operations
    Every lower-layer exception leaves here as StorageFailure.
    """

    def __init__(self, client: Client = None):
        """
        Args:
            client: Optional Supabase client. If not provided, uses the cached admin client.
        """
        self.client = client or get_supabase_admin_client()

    def table(self, table: str):
        """Raw query builder for filters the helpers below do not cover"""
        return self.client.table(table)

    def run(self, query, action: str):
        """
        Execute a prepared query builder

        Args:
            query: postgrest request builder
            action: short description used in logs and error messages

        Returns:
            The postgrest response
        """
        try:
            return query.execute()
        except Exception as e:
            logger.error(f"Error during {action}: {e}")
            raise StorageFailure(f"Failed to {action}: {str(e)}") from e

    # ============================================
    # CREATE OPERATIONS
    # ============================================

    async def insert_one(self, table: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        response = self.run(self.client.table(table).insert(data), f"insert into {table}")

        if response.data and len(response.data) > 0:
            logger.info(f"Inserted record into {table}")
            return response.data[0]
        logger.warning(f"Insert into {table} returned no data")
        return None

    # ============================================
    # READ OPERATIONS
    # ============================================

    def fetch_all(
        self,
        build_query: Callable[[], Any],
        action: str,
        page_size: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Read every row a query matches, one range at a time

        PostgREST caps each response (1000 rows by default), so a single
        request can silently come back short.

        Args:
            build_query: returns a fresh, ordered query builder per page
            action: short description used in logs and error messages
            page_size: rows per request, STORE_FETCH_CHUNK by default
        """
        page_size = page_size or settings.STORE_FETCH_CHUNK
        rows: List[Dict[str, Any]] = []
        start = 0
        while True:
            response = self.run(build_query().range(start, start + page_size - 1), action)
            page = response.data or []
            rows.extend(page)
            if len(page) < page_size:
                break
            start += page_size
        return rows

    async def select_all(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        in_filters: Optional[Dict[str, Iterable[Any]]] = None,
        order_by: Union[str, Sequence[str], None] = None,
        ascending: bool = True,
        limit: Optional[int] = None,
        columns: str = "*"
    ) -> List[Dict[str, Any]]:
        """
        Select all records from a table with optional filters

        Without `limit` the read is paged until exhausted, so pass an
        `order_by` that is unique (or ends in a unique column).

        Args:
            table: Table name
            filters: Dictionary of column:value equality filters
            in_filters: Dictionary of column:values membership filters
            order_by: Column name, or column names, to order results by
            ascending: Sort direction (True for ASC, False for DESC)
            limit: Maximum number of records to return
            columns: select list, embedded resources included

        Example:
            >>> students = await db.select_all(
            ...     "students",
            ...     filters={"department_id": "some-uuid", "is_active": True},
            ...     order_by=("name", "student_id")
            ... )
        """
        order_columns = [order_by] if isinstance(order_by, str) else list(order_by or [])

        def build():
            query = self.client.table(table).select(columns)

            if filters:
                for key, value in filters.items():
                    query = query.eq(key, value)

            if in_filters:
                for key, values in in_filters.items():
                    query = query.in_(key, list(values))

            for column in order_columns:
                query = query.order(column, desc=not ascending)
            return query

        if limit:
            rows = self.run(build().limit(limit), f"select from {table}").data
        else:
            rows = self.fetch_all(build, f"select from {table}")
        logger.debug(f"Selected {len(rows)} records from {table}")
        return rows

    async def select_by_id(
        self,
        table: str,
        id_column: str,
        id_value: Any
    ) -> Optional[Dict[str, Any]]:
        """
        Select a single record by its ID

        Returns:
            dict: The record if found, None otherwise
        """
        response = self.run(
            self.client.table(table).select("*").eq(id_column, id_value).limit(1),
            f"select from {table}"
        )

        if response.data and len(response.data) > 0:
            return response.data[0]
        logger.debug(f"No record found in {table} with {id_column}={id_value}")
        return None

    # ============================================
    # UPDATE OPERATIONS
    # ============================================

    async def update_by_id(
        self,
        table: str,
        id_column: str,
        id_value: Any,
        data: Dict[str, Any],
        filters: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Update a record by its ID

        Args:
            filters: extra column:value conditions the row must still meet;
                the update is a no-op when it does not

        Returns:
            dict: Updated record, None when no row matched
        """
        query = self.client.table(table).update(data).eq(id_column, id_value)
        for key, value in (filters or {}).items():
            query = query.eq(key, value)
        response = self.run(query, f"update {table}")

        if response.data and len(response.data) > 0:
            logger.info(f"Updated record in {table} with {id_column}={id_value}")
            return response.data[0]
        logger.warning(f"Update in {table} returned no data")
        return None

    # ============================================
    # DELETE OPERATIONS
    # ============================================

    async def delete_by_id(
        self,
        table: str,
        id_column: str,
        id_value: Any
    ) -> List[Dict[str, Any]]:
        """
        Delete a record by its ID

        Returns:
            list: Deleted record(s)
        """
        response = self.run(
            self.client.table(table).delete().eq(id_column, id_value),
            f"delete from {table}"
        )
        logger.info(f"Deleted record from {table} with {id_column}={id_value}")
        return response.data


# ============================================
# CONVENIENCE FUNCTIONS
# ============================================

async def check_connection() -> bool:
    """
    Test Supabase connection

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        client = get_supabase_admin_client()
        client.table("fees").select("fee_id").limit(1).execute()
        logger.info("Supabase connection test successful")
        return True
    except Exception as e:
        logger.error(f"Supabase connection test failed: {e}")
        return False


def ilike_pattern(term: str) -> Optional[str]:
    """
    Substring pattern for an ilike filter inside an or_() expression

    LIKE wildcards in the term match literally, and the value is double
    quoted so commas and parentheses cannot break the or-filter syntax.
    Returns None for a blank term.
    """
    cleaned = term.strip()
    if not cleaned:
        return None
    for char in ("\\", "%", "_"):
        cleaned = cleaned.replace(char, "\\" + char)
    quoted = cleaned.replace("\\", "\\\\").replace('"', '\\"')
    return f'"%{quoted}%"'


__all__ = [
    'get_supabase_admin_client',
    'SupabaseQueries',
    'check_connection',
    'ilike_pattern',
]
