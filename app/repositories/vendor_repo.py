# app/repositories/vendor_repo.py
import uuid

from sqlmodel import Session

from app.models.vendor import Vendor


class VendorRepository:
    """Read-only access to vendors for the payment flow."""

    def get_by_id(self, session: Session, vendor_id: uuid.UUID) -> Vendor | None:
        return session.get(Vendor, vendor_id)
