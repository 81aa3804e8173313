# ems/core/repository.py
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from ems.core.exceptions import ConflictError, StoreError

logger = logging.getLogger(__name__)

E = TypeVar("E")
T = TypeVar("T", bound=BaseModel)


def _no_scope(stmt: Select) -> Select:
    return stmt


@dataclass(frozen=True)
class EntityMapping(Generic[E, T]):
    """Everything the generic repository needs to know about one entity.

    ``scope`` applies the joins and filters shared by every read. ``columns``
    returns the labelled projection whose labels match the transport fields,
    so listing is a single composed query. ``to_transport`` maps one loaded
    entity for single-row reads.
    """
    model: Type[E]
    transport: Type[T]
    columns: Callable[[], Sequence[Any]]
    to_transport: Callable[[E], T]
    from_payload: Callable[[Any], E]
    update_entity: Callable[[E, Any], None]
    scope: Callable[[Select], Select] = _no_scope
    load_options: Callable[[], Sequence[Any]] = lambda: ()
    order_by: Callable[[], Sequence[Any]] = lambda: ()
    name: str = field(default="")

    @property
    def label(self) -> str:
        return self.name or self.model.__name__


async def flush(session: AsyncSession, what: str) -> None:
    try:
        await session.flush()
    except IntegrityError as e:
        logger.warning(f"Constraint violation while saving {what}: {str(e.orig)}")
        raise ConflictError(f"{what} conflicts with an existing record") from e
    except SQLAlchemyError as e:
        logger.error(f"Store error while saving {what}: {str(e)}")
        raise StoreError(f"Failed to save {what}") from e


class Repository(Generic[E, T]):
    def __init__(self, mapping: EntityMapping[E, T]):
        self.mapping = mapping
        self.model_class = mapping.model

    @property
    def _id(self):
        return self.model_class.id

    def projection(self, *where, order_by: Optional[Sequence[Any]] = None) -> Select:
        stmt = self.mapping.scope(select(*self.mapping.columns()))
        if where:
            stmt = stmt.where(*where)
        ordering = self.mapping.order_by() if order_by is None else order_by
        if ordering:
            stmt = stmt.order_by(*ordering)
        return stmt

    async def list_all(
        self,
        session: AsyncSession,
        *where,
        order_by: Optional[Sequence[Any]] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[T]:
        stmt = self.projection(*where, order_by=order_by)
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        transport = self.mapping.transport
        return [transport.model_validate(dict(row)) for row in result.mappings().all()]

    async def get_entity(self, session: AsyncSession, id_value: int) -> Optional[E]:
        stmt = (
            self.mapping.scope(select(self.model_class))
            .options(*self.mapping.load_options())
            .where(self._id == id_value)
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def get_by_id(self, session: AsyncSession, id_value: int) -> Optional[T]:
        entity = await self.get_entity(session, id_value)
        if entity is None:
            return None
        return self.mapping.to_transport(entity)

    async def exists(self, session: AsyncSession, id_value: int) -> bool:
        stmt = self.mapping.scope(select(self._id)).where(self._id == id_value).limit(1)
        result = await session.execute(stmt)
        return result.scalar() is not None

    async def count(self, session: AsyncSession, *where) -> int:
        stmt = self.mapping.scope(select(func.count(self._id)))
        if where:
            stmt = stmt.where(*where)
        result = await session.execute(stmt)
        return result.scalar() or 0

    async def create(self, session: AsyncSession, payload: Any) -> T:
        entity = self.mapping.from_payload(payload)
        session.add(entity)
        await flush(session, self.mapping.label)
        logger.info(f"{self.mapping.label} {entity.id} created")
        return await self.get_by_id(session, entity.id)

    async def create_many(self, session: AsyncSession, payloads: Sequence[Any]) -> List[T]:
        entities = [self.mapping.from_payload(payload) for payload in payloads]
        session.add_all(entities)
        await flush(session, self.mapping.label)
        ids = [entity.id for entity in entities]
        logger.info(f"{len(ids)} {self.mapping.label} records created")
        return await self.list_all(session, self._id.in_(ids), order_by=[self._id])

    async def update(self, session: AsyncSession, id_value: int, payload: Any) -> Optional[T]:
        entity = await session.get(self.model_class, id_value)
        if entity is None:
            return None

        self.mapping.update_entity(entity, payload)
        await flush(session, self.mapping.label)
        return await self.get_by_id(session, id_value)

    async def delete(self, session: AsyncSession, id_value: int) -> bool:
        entity = await session.get(self.model_class, id_value)
        if entity is None:
            return False

        await session.delete(entity)
        await flush(session, self.mapping.label)
        logger.info(f"{self.mapping.label} {id_value} deleted")
        return True
