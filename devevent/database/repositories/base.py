"""Base repository class for common database operations."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
import asyncpg
import structlog

from devevent.database.connections import ConnectionCache
from devevent.models.event import TrackedModel


logger = structlog.get_logger(__name__)

T = TypeVar('T', bound=TrackedModel)


class BaseRepository(ABC, Generic[T]):
    """Base repository class providing common database operations."""

    model_class: Type[T]

    def __init__(self, cache: ConnectionCache, table_name: str):
        """
        Initialize base repository.

        Args:
            cache: Connection cache handing out the pool
            table_name: Name of the database table
        """
        self.cache = cache
        self.table_name = table_name
        self.logger = logger.bind(component=f"{table_name}_repository")

    @abstractmethod
    def _model_to_dict(self, model: T) -> Dict[str, Any]:
        """Convert model instance to dictionary for database storage."""
        pass

    def _row_to_model(self, row: asyncpg.Record) -> T:
        """Convert database row to a clean model instance."""
        return self.model_class.from_storage(dict(row))

    def _column(self, name: str) -> str:
        """Return ``name`` if it is a column of this table, for safe interpolation."""
        if name not in self.model_class.model_fields:
            raise ValueError(f"Unknown column for {self.table_name}: {name}")
        return name

    async def find_by_id(self, id_value: int) -> Optional[T]:
        """
        Find a record by its ID.

        Args:
            id_value: The ID to search for

        Returns:
            Model instance if found, None otherwise
        """
        return await self.find_one_by_field("id", id_value)

    async def find_one_by_field(self, field: str, value: Any) -> Optional[T]:
        """
        Find the first record whose ``field`` equals ``value``.

        Returns:
            Model instance if found, None otherwise
        """
        try:
            column = self._column(field)
            async with self.cache.connection() as conn:
                query = f"SELECT * FROM {self.table_name} WHERE {column} = $1 LIMIT 1"
                row = await conn.fetchrow(query, value)

                if row:
                    return self._row_to_model(row)
                return None

        except Exception as e:
            self.logger.error("Error finding record by field",
                              table=self.table_name, field=field, error=str(e))
            raise

    async def find_by_field(self,
                            field: str,
                            value: Any,
                            order_by: str = "id",
                            limit: int = 1000,
                            offset: int = 0) -> List[T]:
        """
        Find all records whose ``field`` equals ``value``.

        Args:
            field: Column to match
            value: Value to match
            order_by: ORDER BY clause
            limit: Maximum number of records
            offset: Number of records to skip

        Returns:
            List of matching model instances
        """
        return await self.find_by_criteria(
            f"{self._column(field)} = $1",
            [value],
            order_by=order_by,
            limit=limit,
            offset=offset
        )

    async def find_all(self, order_by: str = "id", limit: int = 1000, offset: int = 0) -> List[T]:
        """
        Find all records with pagination.

        Args:
            order_by: ORDER BY clause
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            List of model instances
        """
        try:
            async with self.cache.connection() as conn:
                query = f"SELECT * FROM {self.table_name} ORDER BY {order_by} LIMIT $1 OFFSET $2"
                rows = await conn.fetch(query, limit, offset)

                return [self._row_to_model(row) for row in rows]

        except Exception as e:
            self.logger.error("Error finding all records",
                              table=self.table_name, error=str(e))
            raise

    async def find_by_criteria(self,
                               where_clause: str,
                               params: List[Any] = None,
                               order_by: str = "id",
                               limit: int = 1000,
                               offset: int = 0) -> List[T]:
        """
        Find records matching criteria.

        Args:
            where_clause: WHERE clause (without WHERE keyword)
            params: Parameters for the WHERE clause
            order_by: ORDER BY clause
            limit: Maximum number of records
            offset: Number of records to skip

        Returns:
            List of matching model instances
        """
        try:
            params = params or []

            query = f"""
                SELECT * FROM {self.table_name}
                WHERE {where_clause}
                ORDER BY {order_by}
                LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
            """

            async with self.cache.connection() as conn:
                rows = await conn.fetch(query, *params, limit, offset)

                return [self._row_to_model(row) for row in rows]

        except Exception as e:
            self.logger.error("Error finding records by criteria",
                              table=self.table_name, error=str(e))
            raise

    async def count_by_field(self, field: str, value: Any) -> int:
        """Count records whose ``field`` equals ``value``."""
        try:
            query = f"SELECT COUNT(*) FROM {self.table_name} WHERE {self._column(field)} = $1"

            async with self.cache.connection() as conn:
                return await conn.fetchval(query, value)

        except Exception as e:
            self.logger.error("Error counting records",
                              table=self.table_name, field=field, error=str(e))
            raise

    async def exists(self, id_value: int) -> bool:
        """
        Check if a record exists by ID.

        Args:
            id_value: ID to check

        Returns:
            True if record exists, False otherwise
        """
        try:
            query = f"SELECT 1 FROM {self.table_name} WHERE id = $1 LIMIT 1"

            async with self.cache.connection() as conn:
                result = await conn.fetchval(query, id_value)
                return result is not None

        except Exception as e:
            self.logger.error("Error checking record existence",
                              table=self.table_name, id=id_value, error=str(e))
            raise

    async def create(self, model: T) -> T:
        """
        Insert a new record.

        Args:
            model: Model instance to create

        Returns:
            Created model instance with database-assigned fields (ID, timestamps)
        """
        try:
            data = self._model_to_dict(model)

            # Let the database fill in defaults for unset values
            filtered_data = {k: v for k, v in data.items() if v is not None}

            columns = list(filtered_data.keys())
            placeholders = [f"${i+1}" for i in range(len(columns))]
            values = list(filtered_data.values())

            query = f"""
                INSERT INTO {self.table_name} ({', '.join(columns)})
                VALUES ({', '.join(placeholders)})
                RETURNING *
            """

            async with self.cache.connection() as conn:
                row = await conn.fetchrow(query, *values)
                created_model = self._row_to_model(row)

                self.logger.info("Record created",
                                 table=self.table_name, id=created_model.id)

                return created_model

        except Exception as e:
            self.logger.error("Error creating record",
                              table=self.table_name, error=str(e))
            raise

    async def update(self, model: T) -> Optional[T]:
        """
        Write the dirty fields of a stored record.

        Args:
            model: Model instance with an ID

        Returns:
            Updated model instance if found, None otherwise
        """
        if model.id is None:
            raise ValueError("Cannot update a record without an id")

        try:
            data = self._model_to_dict(model)
            updates = {k: data[k] for k in model.dirty_fields if k in data}

            if not updates:
                return model

            set_clauses = [f"{col} = ${i+2}" for i, col in enumerate(updates.keys())]
            set_clauses.append("updated_at = NOW()")
            values = [model.id] + list(updates.values())

            query = f"""
                UPDATE {self.table_name}
                SET {', '.join(set_clauses)}
                WHERE id = $1
                RETURNING *
            """

            async with self.cache.connection() as conn:
                row = await conn.fetchrow(query, *values)

                if row:
                    self.logger.info("Record updated",
                                     table=self.table_name, id=model.id, fields=sorted(updates))
                    return self._row_to_model(row)

                return None

        except Exception as e:
            self.logger.error("Error updating record",
                              table=self.table_name, id=model.id, error=str(e))
            raise

    async def delete(self, id_value: int) -> bool:
        """
        Delete a record by ID.

        Args:
            id_value: ID of the record to delete

        Returns:
            True if record was deleted, False if not found
        """
        try:
            query = f"DELETE FROM {self.table_name} WHERE id = $1"

            async with self.cache.connection() as conn:
                result = await conn.execute(query, id_value)

                deleted = result.split()[-1] == "1"  # "DELETE 1" or "DELETE 0"

                if deleted:
                    self.logger.info("Record deleted",
                                     table=self.table_name, id=id_value)

                return deleted

        except Exception as e:
            self.logger.error("Error deleting record",
                              table=self.table_name, id=id_value, error=str(e))
            raise
