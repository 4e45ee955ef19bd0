"""Products API router."""
from fastapi import APIRouter, Depends, Path
from opentelemetry import trace

from auth import get_caller
from dependencies import get_product_catalog
from schemas import (
    MessageResponse,
    ProductCreate,
    ProductEnvelope,
    ProductResponse,
    ProductsListResponse,
    ProductUpdate,
)
from services.authorization import Caller
from services.catalog_service import ProductCatalog

router = APIRouter(prefix="/api/product", tags=["products"])


@router.get("", response_model=ProductsListResponse)
def get_products(catalog: ProductCatalog = Depends(get_product_catalog)):
    """Get all products in the catalog."""
    products = catalog.list_products()
    return {
        "success": True,
        "products": [ProductResponse.model_validate(p) for p in products]
    }


@router.get("/my", response_model=ProductsListResponse)
def get_my_products(
    caller: Caller = Depends(get_caller),
    catalog: ProductCatalog = Depends(get_product_catalog)
):
    """Products of the caller's seller account."""
    products = catalog.list_seller_products(caller)
    return {
        "success": True,
        "products": [ProductResponse.model_validate(p) for p in products]
    }


@router.get("/{product_id}", response_model=ProductEnvelope)
def get_product(
    product_id: int = Path(..., description="Product ID"),
    catalog: ProductCatalog = Depends(get_product_catalog)
):
    """Get product details."""
    product = catalog.get_product(product_id)

    span = trace.get_current_span()
    span.set_attribute("product.id", product_id)

    return {"success": True, "product": ProductResponse.model_validate(product)}


@router.post("", status_code=201, response_model=ProductEnvelope)
def create_product(
    request: ProductCreate,
    caller: Caller = Depends(get_caller),
    catalog: ProductCatalog = Depends(get_product_catalog)
):
    """Add a product - caller must have a seller account."""
    product = catalog.create_product(
        caller,
        name=request.name,
        price=request.price,
        stock=request.stock,
        description=request.description,
        category=request.category
    )
    return {"success": True, "product": ProductResponse.model_validate(product)}


@router.put("/{product_id}", response_model=ProductEnvelope)
def update_product(
    request: ProductUpdate,
    product_id: int = Path(..., description="Product ID"),
    caller: Caller = Depends(get_caller),
    catalog: ProductCatalog = Depends(get_product_catalog)
):
    """Update a product - owning seller only."""
    product = catalog.update_product(caller, product_id, request.model_dump(exclude_unset=True))
    return {"success": True, "product": ProductResponse.model_validate(product)}


@router.delete("/{product_id}", response_model=MessageResponse)
def delete_product(
    product_id: int = Path(..., description="Product ID"),
    caller: Caller = Depends(get_caller),
    catalog: ProductCatalog = Depends(get_product_catalog)
):
    """Delete a product - owning seller only."""
    catalog.delete_product(caller, product_id)

    span = trace.get_current_span()
    span.set_attribute("product.id", product_id)

    return {"success": True, "message": "Product deleted successfully"}
