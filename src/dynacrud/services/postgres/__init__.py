"""
PostgreSQL document store for config-defined entities.
"""

from .repository import DocumentRepository, parse_record_id
from .service import PostgresService, get_postgres_service

__all__ = ["PostgresService", "get_postgres_service", "DocumentRepository", "parse_record_id"]
