"""Database layer package for SQLAlchemy query projection boundaries."""

from .projection import SQLAlchemyProjectionService, StatementFilter, db_build_projection

__all__ = [
	"SQLAlchemyProjectionService",
	"StatementFilter",
	"db_build_projection",
]
