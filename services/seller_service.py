"""Seller directory: onboarding, approval and user -> seller lookup."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from errors import (
    DuplicateSellerError,
    ForbiddenError,
    SellerAlreadyApprovedError,
    SellerNotFoundError,
)
from models import Seller
from services.authorization import Caller
from services.unit_of_work import AbstractUnitOfWork

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "email", "shop_name", "phone", "address")
DEFAULT_REJECTION_REASON = "Rejected by owner"


class SellerDirectory:
    """Service for seller records."""

    def __init__(self, uow: AbstractUnitOfWork):
        self.uow = uow

    def find_seller_by_user(self, user_id: str) -> Optional[Seller]:
        with self.uow:
            return self.uow.sellers.get_by_user(user_id)

    def find_seller_by_id(self, seller_id: int) -> Optional[Seller]:
        with self.uow:
            return self.uow.sellers.get(seller_id)

    def get_seller(self, seller_id: int) -> Seller:
        seller = self.find_seller_by_id(seller_id)
        if seller is None:
            raise SellerNotFoundError(seller_id)
        return seller

    def register(
        self,
        caller: Caller,
        name: str,
        email: str,
        shop_name: str,
        phone: str,
        address: Optional[str] = None
    ) -> Seller:
        """
        Create a seller request for the caller's account, pending approval.

        Raises:
            DuplicateSellerError: If the email is taken or the caller already has a seller record
        """
        email = email.strip().lower()
        with self.uow:
            if self.uow.sellers.get_by_email(email) is not None:
                raise DuplicateSellerError()
            if self.uow.sellers.get_by_user(caller.user_id) is not None:
                raise DuplicateSellerError("User already has a seller account")

            seller = Seller(
                user_id=caller.user_id,
                name=name,
                email=email,
                shop_name=shop_name,
                phone=phone,
                address=address,
                is_approved=False
            )
            self.uow.sellers.add(seller)
            self.uow.commit()

        logger.info("Seller registered", extra={
            "seller_id": seller.id,
            "user_id": caller.user_id,
            "shop_name": shop_name
        })
        return seller

    def list_sellers(self, caller: Caller) -> List[Seller]:
        if not caller.is_admin:
            raise ForbiddenError("Access denied")
        with self.uow:
            return self.uow.sellers.list()

    def update_seller(self, caller: Caller, seller_id: int, changes: Dict[str, Any]) -> Seller:
        """
        Update profile fields of a seller record.

        Allowed for the seller's own user and for admins. Approval state is
        changed only through ``approve``/``reject``.

        Raises:
            SellerNotFoundError: If the seller does not exist
            ForbiddenError: If the caller is neither the seller's user nor an admin
            DuplicateSellerError: If the new email belongs to another seller
        """
        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
        if "email" in changes:
            changes["email"] = changes["email"].strip().lower()

        with self.uow:
            seller = self.uow.sellers.get(seller_id)
            if seller is None:
                raise SellerNotFoundError(seller_id)
            if seller.user_id != caller.user_id and not caller.is_admin:
                raise ForbiddenError("Not authorized")

            if "email" in changes:
                holder = self.uow.sellers.get_by_email(changes["email"])
                if holder is not None and holder.id != seller.id:
                    raise DuplicateSellerError("Email already in use")

            for field, value in changes.items():
                setattr(seller, field, value)
            self.uow.commit()

        logger.info("Seller updated", extra={
            "seller_id": seller_id,
            "updated_by": caller.user_id,
            "fields": sorted(changes)
        })
        return seller

    def delete_seller(self, caller: Caller, seller_id: int) -> None:
        """
        Remove a seller record (admin only).

        The seller's products stay in the catalog without a seller, so they
        can no longer be ordered. Orders already placed keep their snapshot.
        """
        if not caller.is_admin:
            raise ForbiddenError("Access denied")
        with self.uow:
            seller = self.uow.sellers.get(seller_id)
            if seller is None:
                raise SellerNotFoundError(seller_id)

            products = self.uow.products.list_for_seller(seller.id)
            for product in products:
                product.seller_id = None
            self.uow.sellers.delete(seller)
            self.uow.commit()

        logger.info("Seller deleted", extra={
            "seller_id": seller_id,
            "deleted_by": caller.user_id,
            "detached_products": len(products)
        })

    def approve(self, caller: Caller, seller_id: int) -> Seller:
        """
        Mark a seller as approved (admin only).

        Raises:
            SellerAlreadyApprovedError: If the seller is approved already
        """
        if not caller.is_admin:
            raise ForbiddenError("Access denied")
        with self.uow:
            seller = self.uow.sellers.get(seller_id)
            if seller is None:
                raise SellerNotFoundError(seller_id)
            if seller.is_approved:
                raise SellerAlreadyApprovedError(seller_id)
            seller.is_approved = True
            seller.rejection_reason = None
            seller.rejected_at = None
            seller.rejected_by = None
            self.uow.commit()

        logger.info("Seller approved", extra={"seller_id": seller_id, "approved_by": caller.user_id})
        return seller

    def reject(self, caller: Caller, seller_id: int, reason: Optional[str] = None) -> Seller:
        """Withdraw or refuse approval and keep the reason on the record (admin only)."""
        if not caller.is_admin:
            raise ForbiddenError("Access denied")
        reason = (reason or "").strip() or DEFAULT_REJECTION_REASON

        with self.uow:
            seller = self.uow.sellers.get(seller_id)
            if seller is None:
                raise SellerNotFoundError(seller_id)
            seller.is_approved = False
            seller.rejection_reason = reason
            seller.rejected_at = datetime.utcnow()
            seller.rejected_by = caller.user_id
            self.uow.commit()

        logger.info("Seller rejected", extra={
            "seller_id": seller_id,
            "rejected_by": caller.user_id,
            "reason": reason
        })
        return seller
