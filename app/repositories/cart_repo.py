import uuid
from sqlmodel import Session, select, col
from app.models.cart import CartItem


class CartRepository:

    def delete_many(
        self,
        session: Session,
        user_id: uuid.UUID,
        item_ids: list[uuid.UUID],
    ) -> int:
        """
        Delete the given cart rows of one user and return how many went.

        Rows belonging to other users are left alone.
        """
        if not item_ids:
            return 0
        stmt = select(CartItem).where(
            CartItem.user_id == user_id,
            col(CartItem.id).in_(item_ids),
        )
        rows = session.exec(stmt).all()
        for row in rows:
            session.delete(row)
        session.commit()
        return len(rows)
