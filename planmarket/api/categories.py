from fastapi import APIRouter, Depends
from fastapi.responses import Response

from planmarket.api.deps import get_services
from planmarket.models.product import CategoryInput
from planmarket.services import Services

router = APIRouter(prefix="/categories", tags=["categories"])


@router.post("", status_code=201)
def create_category(body: CategoryInput, services: Services = Depends(get_services)):
    return services.categories.create(body).model_dump(mode="json")


@router.get("")
def list_categories(services: Services = Depends(get_services)):
    return [c.model_dump(mode="json") for c in services.categories.list()]


@router.get("/{category_id}")
def get_category(category_id: str, services: Services = Depends(get_services)):
    return services.categories.get(category_id).model_dump(mode="json")


@router.patch("/{category_id}")
def rename_category(category_id: str, body: CategoryInput, services: Services = Depends(get_services)):
    return services.categories.rename(category_id, body).model_dump(mode="json")


@router.delete("/{category_id}", status_code=204)
def delete_category(category_id: str, services: Services = Depends(get_services)):
    services.categories.delete(category_id)
    return Response(status_code=204)
