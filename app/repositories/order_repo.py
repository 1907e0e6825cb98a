from sqlmodel import Session

from app.models.order import Booking, Order, OrderItem


class OrderRepository:
    """
    Data access layer for orders, bookings and order_items.

    NOTE:
      - Every write commits on its own. Settlement happens after the
        on-chain payment is final, so each row that makes it into the
        database is kept even if a later insert fails.
    """

    def create_order(self, session: Session, order: Order) -> Order:
        session.add(order)
        session.commit()
        session.refresh(order)
        return order

    def create_booking(self, session: Session, booking: Booking) -> Booking:
        session.add(booking)
        session.commit()
        session.refresh(booking)
        return booking

    def create_item(self, session: Session, item: OrderItem) -> OrderItem:
        session.add(item)
        session.commit()
        session.refresh(item)
        return item
