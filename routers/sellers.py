"""Sellers API router."""
from typing import Optional

from fastapi import APIRouter, Depends, Path

from auth import get_caller
from dependencies import get_seller_directory
from schemas import (
    MessageResponse,
    SellerCreate,
    SellerEnvelope,
    SellerReject,
    SellerResponse,
    SellersListResponse,
    SellerUpdate,
)
from services.authorization import Caller
from services.seller_service import SellerDirectory

router = APIRouter(prefix="/api/seller", tags=["sellers"])


@router.post("", status_code=201, response_model=SellerEnvelope)
def register_seller(
    request: SellerCreate,
    caller: Caller = Depends(get_caller),
    directory: SellerDirectory = Depends(get_seller_directory)
):
    """Request a seller account for the caller; starts unapproved."""
    seller = directory.register(
        caller,
        name=request.name,
        email=request.email,
        shop_name=request.shop_name,
        phone=request.phone,
        address=request.address
    )
    return {"success": True, "seller": SellerResponse.model_validate(seller)}


@router.get("", response_model=SellersListResponse)
def get_sellers(
    caller: Caller = Depends(get_caller),
    directory: SellerDirectory = Depends(get_seller_directory)
):
    """List sellers - admin/owner only."""
    sellers = directory.list_sellers(caller)
    return {"success": True, "sellers": [SellerResponse.model_validate(s) for s in sellers]}


@router.get("/{seller_id}", response_model=SellerEnvelope)
def get_seller(
    seller_id: int = Path(..., description="Seller ID"),
    caller: Caller = Depends(get_caller),
    directory: SellerDirectory = Depends(get_seller_directory)
):
    """Get one seller."""
    seller = directory.get_seller(seller_id)
    return {"success": True, "seller": SellerResponse.model_validate(seller)}


@router.put("/{seller_id}", response_model=SellerEnvelope)
def update_seller(
    request: SellerUpdate,
    seller_id: int = Path(..., description="Seller ID"),
    caller: Caller = Depends(get_caller),
    directory: SellerDirectory = Depends(get_seller_directory)
):
    """Update a seller profile - the seller's own user or admin/owner."""
    seller = directory.update_seller(caller, seller_id, request.model_dump(exclude_unset=True))
    return {"success": True, "seller": SellerResponse.model_validate(seller)}


@router.delete("/{seller_id}", response_model=MessageResponse)
def delete_seller(
    seller_id: int = Path(..., description="Seller ID"),
    caller: Caller = Depends(get_caller),
    directory: SellerDirectory = Depends(get_seller_directory)
):
    """Delete a seller - admin/owner only."""
    directory.delete_seller(caller, seller_id)
    return {"success": True, "message": "Seller deleted"}


@router.put("/{seller_id}/approve", response_model=SellerEnvelope)
def approve_seller(
    seller_id: int = Path(..., description="Seller ID"),
    caller: Caller = Depends(get_caller),
    directory: SellerDirectory = Depends(get_seller_directory)
):
    """Approve a seller - admin/owner only."""
    seller = directory.approve(caller, seller_id)
    return {"success": True, "seller": SellerResponse.model_validate(seller)}


@router.put("/{seller_id}/reject", response_model=SellerEnvelope)
def reject_seller(
    request: Optional[SellerReject] = None,
    seller_id: int = Path(..., description="Seller ID"),
    caller: Caller = Depends(get_caller),
    directory: SellerDirectory = Depends(get_seller_directory)
):
    """Reject a seller, optionally with a reason - admin/owner only."""
    reason = request.reason if request is not None else None
    seller = directory.reject(caller, seller_id, reason)
    return {"success": True, "seller": SellerResponse.model_validate(seller)}
