import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List

import pytz
from sqlalchemy import desc, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from canteen.application.clock import utcnow
from canteen.domain.enums import TERMINAL_STATUSES, OrderStatus, PaymentMethod, PaymentStatus
from canteen.domain.errors import StoreUnavailable
from canteen.domain.models import Order, OrderItem
from canteen.infrastructure.database import OrderRow
from canteen.interfaces.IOrderRepository import IOrderRepository

logger = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 5


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _to_domain(row: OrderRow) -> Order:
    return Order(
        id=row.id,
        order_number=row.order_number,
        customer_name=row.customer_name,
        customer_contact=row.customer_contact,
        items=[OrderItem.model_validate(item) for item in row.items],
        status=OrderStatus(row.status),
        payment_method=PaymentMethod(row.payment_method),
        payment_status=PaymentStatus(row.payment_status),
        is_manual_order=bool(row.is_manual_order),
        otp=row.otp,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


class SqlOrderRepository(IOrderRepository):

    def __init__(self, session_factory: sessionmaker, timezone_name: str = "UTC"):
        self.session_factory = session_factory
        self.tz = pytz.timezone(timezone_name)

    def _day_prefix(self, now: datetime) -> str:
        return now.astimezone(self.tz).strftime("%y%m%d")

    def create_order(
        self,
        customer_name: str,
        customer_contact: str,
        items: List[OrderItem],
        payment_method: PaymentMethod,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        is_manual_order: bool = False,
    ) -> Order:
        now = utcnow()
        prefix = self._day_prefix(now)
        item_rows = [item.model_dump(mode="json") for item in items]
        total = sum((item.unit_price * item.quantity for item in items), Decimal("0"))

        for attempt in range(ORDER_NUMBER_ATTEMPTS):
            session = self.session_factory()
            try:
                # Format: YYMMDD-NNNN, sequence restarts every local day
                count = (
                    session.query(func.count(OrderRow.id))
                    .filter(OrderRow.order_number.like(f"{prefix}-%"))
                    .scalar()
                )
                row = OrderRow(
                    id=uuid.uuid4().hex,
                    order_number=f"{prefix}-{count + 1 + attempt:04d}",
                    customer_name=customer_name,
                    customer_contact=customer_contact,
                    items=item_rows,
                    total=total,
                    status=OrderStatus.PENDING.value,
                    payment_method=payment_method.value,
                    payment_status=payment_status.value,
                    is_manual_order=is_manual_order,
                    otp=None,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                session.commit()
                return _to_domain(row)
            except IntegrityError:
                # Another request took the same number, go again
                session.rollback()
                logger.warning(f"Order number collision on {prefix} (attempt {attempt + 1})")
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"❌ DB Error creating order: {e}")
                raise StoreUnavailable("Failed to create order") from e
            finally:
                session.close()
        raise StoreUnavailable("Could not allocate an order number")

    def get_order(self, order_id: str) -> Order | None:
        session = self.session_factory()
        try:
            row = session.get(OrderRow, order_id)
            return _to_domain(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"❌ DB Read Error: {e}")
            raise StoreUnavailable("Failed to fetch order") from e
        finally:
            session.close()

    def list_orders(self, status: OrderStatus | None = None, finished_limit: int = 200) -> List[Order]:
        """
        Every open order plus the newest ``finished_limit`` completed / cancelled ones.
        Ordered by created_at DESC (Newest first).
        """
        finished = [s.value for s in TERMINAL_STATUSES]
        newest_first = (desc(OrderRow.created_at), desc(OrderRow.order_number))
        session = self.session_factory()
        try:
            rows = []
            if status is None or status not in TERMINAL_STATUSES:
                # Open orders are never windowed: terminals rebuild their views from this list
                query = session.query(OrderRow).filter(OrderRow.status.notin_(finished))
                if status is not None:
                    query = query.filter(OrderRow.status == status.value)
                rows += query.all()
            if status is None or status in TERMINAL_STATUSES:
                query = session.query(OrderRow).filter(OrderRow.status.in_(finished))
                if status is not None:
                    query = query.filter(OrderRow.status == status.value)
                rows += query.order_by(*newest_first).limit(finished_limit).all()
            orders = [_to_domain(row) for row in rows]
            orders.sort(key=lambda o: (o.created_at, o.order_number), reverse=True)
            return orders
        except SQLAlchemyError as e:
            logger.error(f"❌ DB Read Error: {e}")
            raise StoreUnavailable("Failed to fetch orders") from e
        finally:
            session.close()

    def list_pending_payments(self) -> List[Order]:
        session = self.session_factory()
        try:
            rows = (
                session.query(OrderRow)
                .filter(OrderRow.payment_method == PaymentMethod.OFFLINE.value)
                .filter(OrderRow.payment_status == PaymentStatus.PENDING.value)
                .filter(OrderRow.status == OrderStatus.PENDING.value)
                .order_by(desc(OrderRow.created_at), desc(OrderRow.order_number))
                .all()
            )
            return [_to_domain(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"❌ DB Read Error: {e}")
            raise StoreUnavailable("Failed to fetch pending payments") from e
        finally:
            session.close()

    def compare_and_set(self, expected: Order, updated: Order) -> bool:
        session = self.session_factory()
        try:
            result = session.execute(
                update(OrderRow)
                .where(OrderRow.id == expected.id)
                .where(OrderRow.status == expected.status.value)
                .where(OrderRow.payment_status == expected.payment_status.value)
                .values(
                    status=updated.status.value,
                    payment_status=updated.payment_status.value,
                    otp=updated.otp,
                    updated_at=updated.updated_at,
                )
            )
            session.commit()
            return result.rowcount == 1
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"❌ DB Write Error: {e}")
            raise StoreUnavailable("Failed to update order") from e
        finally:
            session.close()
