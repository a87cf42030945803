from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from order_service.models import Order, OrderStatus


class OrderStore:
    """Persistence for orders.

    Every status change is a single conditional UPDATE so two concurrent
    admin actions against the same order cannot both pass the status check.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def add(self, order: Order) -> Order:
        async with self._session_factory() as session:
            session.add(order)
            await session.commit()
            await session.refresh(order)
            return order

    async def get(self, order_id: str) -> Optional[Order]:
        async with self._session_factory() as session:
            return await session.get(Order, order_id, populate_existing=True)

    async def list_newest_first(self, exclude: Iterable[OrderStatus] = ()) -> List[Order]:
        stmt = select(Order).order_by(Order.created_at.desc())
        excluded = list(exclude)
        if excluded:
            stmt = stmt.where(Order.status.not_in(excluded))
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def transition(
        self,
        order_id: str,
        from_statuses: Iterable[OrderStatus],
        to_status: OrderStatus,
        **values,
    ) -> Optional[Order]:
        """Move the order to ``to_status`` only if its current status is in ``from_statuses``.

        Returns the updated order, or None when no row matched (unknown id or
        status precondition not met).
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=datetime.utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
            if result.rowcount == 0:
                return None
            return await session.get(Order, order_id, populate_existing=True)

    async def confirm_by_token(self, token_hash: str, now: datetime) -> Optional[Order]:
        """Promote the order awaiting customer confirmation that owns this unexpired token."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Order.id).where(
                    Order.confirmation_token == token_hash,
                    Order.confirmation_token_expires > now,
                    Order.status == OrderStatus.AWAITING_USER_CONFIRMATION,
                )
            )
            order_id = result.scalar_one_or_none()
        if order_id is None:
            return None
        return await self.transition(
            order_id,
            [OrderStatus.AWAITING_USER_CONFIRMATION],
            OrderStatus.PENDING,
            confirmation_token=None,
            confirmation_token_expires=None,
        )
