"""Products API: CRUD plus catalog listing and search."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from planmarket.api.deps import get_services
from planmarket.features.catalog.models import CatalogFilter
from planmarket.models.product import ProductCreate, ProductUpdate
from planmarket.services import Services

router = APIRouter(prefix="/products", tags=["products"])


@router.post("", status_code=201)
def create_product(body: ProductCreate, services: Services = Depends(get_services)):
    return services.products.create(body).model_dump(mode="json")


@router.get("")
def list_products(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    category_id: Optional[str] = Query(None),
    min_price: Optional[Decimal] = Query(None),
    max_price: Optional[Decimal] = Query(None),
    services: Services = Depends(get_services),
):
    catalog_filter = CatalogFilter(category=category_id, category_exact=True, min_price=min_price, max_price=max_price)
    result = services.product_catalog.list(catalog_filter, page=page, page_size=limit)
    return result.model_dump(mode="json")


@router.get("/search")
def search_products(
    q: Optional[str] = Query(None),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    services: Services = Depends(get_services),
):
    return services.product_catalog.search(q, page=page, page_size=limit).model_dump(mode="json")


@router.get("/{product_id}")
def get_product(product_id: str, services: Services = Depends(get_services)):
    return services.products.get(product_id).model_dump(mode="json")


@router.patch("/{product_id}")
def update_product(product_id: str, body: ProductUpdate, services: Services = Depends(get_services)):
    return services.products.update(product_id, body).model_dump(mode="json")


@router.delete("/{product_id}", status_code=204)
def delete_product(product_id: str, services: Services = Depends(get_services)):
    services.products.delete(product_id)
    return Response(status_code=204)
