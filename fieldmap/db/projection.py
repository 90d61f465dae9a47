"""Query projection of compiled mapping plans into SQLAlchemy `select()` statements.

A projection selects only the columns a destination needs instead of loading
whole ORM entities. Copy and flattened fields become labeled columns, with one
outer join per relationship on a flattened path. Computed and conditional
fields participate only when their rule supplies a `projection` expression.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy import Engine, Select, select
from sqlalchemy import inspect as sqlalchemy_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from fieldmap.domain import MappingConfigurationError
from fieldmap.mapping import FieldPlan, MapperPort

logger = logging.getLogger(__name__)

StatementFilter = Callable[[Select], Select]


def db_build_projection(mapper: MapperPort, entity_type: type, destination_type: type) -> Select:
    """Build a `select()` projecting one mapped entity onto a destination type.

    Args:
        mapper: Mapper holding the compiled plan for the pair.
        entity_type: SQLAlchemy mapped class used as the source type.
        destination_type: Destination type.

    Returns:
        Select: Statement whose column labels are destination field names.

    Raises:
        MappingConfigurationError: Raised when the entity is not mapped or one
            field cannot be expressed in SQL.
    """

    if sqlalchemy_inspect(entity_type, raiseerr=False) is None:
        raise MappingConfigurationError(
            f"{entity_type.__qualname__} is not an SQLAlchemy mapped class and cannot be projected",
            source_type=entity_type,
            destination_type=destination_type,
        )

    plan = mapper.mapper_get_plan(entity_type, destination_type)
    joins: dict[tuple[str, ...], tuple[object, object]] = {}
    labeled_columns = []
    for field_plan in plan.fields:
        if not field_plan.field_has_source():
            continue
        if field_plan.projection is not None:
            expression = field_plan.projection(entity_type)
        elif field_plan.compute is not None or field_plan.when is not None:
            raise MappingConfigurationError(
                f"field '{field_plan.destination}' is computed or conditional and has no projection expression",
                source_type=entity_type,
                destination_type=destination_type,
                field_name=field_plan.destination,
            )
        else:
            expression = _db_resolve_path_column(entity_type, destination_type, field_plan, joins)
        labeled_columns.append(expression.label(field_plan.destination))

    if not labeled_columns:
        raise MappingConfigurationError(
            f"projection {entity_type.__qualname__} -> {destination_type.__qualname__} selects no columns",
            source_type=entity_type,
            destination_type=destination_type,
        )

    statement = select(*labeled_columns).select_from(entity_type)
    for relationship_attribute, target_alias in joins.values():
        statement = statement.outerjoin(relationship_attribute.of_type(target_alias))
    return statement


class SQLAlchemyProjectionService:
    """Execute projection statements and build destination instances from rows."""

    def __init__(self, engine: Engine, mapper: MapperPort):
        """Initialize projection service.

        Args:
            engine: SQLAlchemy engine used for projection queries.
            mapper: Mapper holding compiled plans.

        Raises:
            ValueError: Raised when engine or mapper is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        if mapper is None:
            raise ValueError("mapper must not be None")
        self._engine = engine
        self._mapper = mapper

    def db_project(
        self,
        entity_type: type,
        destination_type: type,
        statement_filter: StatementFilter | None = None,
    ) -> list[object]:
        """Run one projection query and map every row into the destination type.

        Args:
            entity_type: SQLAlchemy mapped class used as the source type.
            destination_type: Destination type.
            statement_filter: Optional callback adding `where`/`order_by`/`limit` clauses.

        Returns:
            list[object]: Destination instances in row order.

        Raises:
            MappingConfigurationError: Raised when the pair cannot be projected.
            RuntimeError: Raised when query execution fails.
        """

        statement = db_build_projection(self._mapper, entity_type, destination_type)
        if statement_filter is not None:
            statement = statement_filter(statement)
        plan = self._mapper.mapper_get_plan(entity_type, destination_type)

        try:
            with Session(self._engine) as session:
                rows = session.execute(statement).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError(
                f"projection query {entity_type.__qualname__} -> {destination_type.__qualname__} failed"
            ) from error

        logger.debug("Projected %d rows into %s", len(rows), destination_type.__qualname__)
        return [plan.plan_apply_values(row) for row in rows]


def _db_resolve_path_column(
    entity_type: type,
    destination_type: type,
    field_plan: FieldPlan,
    joins: dict[tuple[str, ...], tuple[object, object]],
):
    source_path = field_plan.source_path or ()
    current_entity: object = entity_type
    current_class: type = entity_type

    for index, segment in enumerate(source_path):
        entity_mapper = sqlalchemy_inspect(current_class)
        is_leaf = index == len(source_path) - 1

        if segment in entity_mapper.relationships and not is_leaf:
            relationship = entity_mapper.relationships[segment]
            if relationship.uselist:
                break
            path_prefix = tuple(source_path[: index + 1])
            if path_prefix not in joins:
                joins[path_prefix] = (
                    getattr(current_entity, segment),
                    aliased(relationship.mapper.class_),
                )
            current_entity = joins[path_prefix][1]
            current_class = relationship.mapper.class_
            continue

        if segment in entity_mapper.column_attrs and is_leaf:
            return getattr(current_entity, segment)
        break

    raise MappingConfigurationError(
        f"field '{field_plan.destination}' reads '{'.'.join(source_path)}', which is not a column "
        f"reachable through single-valued relationships",
        source_type=entity_type,
        destination_type=destination_type,
        field_name=field_plan.destination,
    )
