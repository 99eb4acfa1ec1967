"""
Plans API: catalog listing/search, preview and download of plan PDFs, and
plan CRUD.

Route order matters: /plans/search is declared before /plans/{plan_id}.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from pydantic import ValidationError

from planmarket.api.deps import get_services, parse_page_list, read_pdf_upload, validation_message
from planmarket.core.errors import BadRequestError
from planmarket.features.catalog.models import CatalogFilter
from planmarket.features.distribution.service import content_disposition
from planmarket.features.plans.slicer import PDF_CONTENT_TYPE
from planmarket.models.plan import PlanCreate, PlanUpdate
from planmarket.models.purchase import PurchaseRequest
from planmarket.services import Services

router = APIRouter(prefix="/plans", tags=["plans"])


def _plan_fields(**fields) -> dict:
    return {k: v for k, v in fields.items() if v is not None}


@router.post("", status_code=201)
def create_plan(
    title: str = Form(...),
    difficulty: str = Form(...),
    price: str = Form(...),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    machine_type: Optional[str] = Form(None),
    preview_pages: Optional[str] = Form(None),
    preview_description: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    version: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    services: Services = Depends(get_services),
):
    """Create a plan from multipart form fields, optionally with its PDF."""
    fields = _plan_fields(
        title=title,
        difficulty=difficulty,
        price=price,
        description=description,
        category=category,
        machine_type=machine_type,
        preview_pages=parse_page_list(preview_pages),
        preview_description=preview_description,
        author=author,
        version=version,
    )
    try:
        data = PlanCreate.model_validate(fields)
    except ValidationError as exc:
        raise BadRequestError(validation_message(exc)) from exc

    content = read_pdf_upload(document, services.settings.MAX_DOCUMENT_BYTES)
    detail = services.plans.create(data, content)
    return detail.model_dump(mode="json")


@router.get("")
def list_plans(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    category: Optional[str] = Query(None),
    category_exact: bool = Query(False),
    machine_type: Optional[str] = Query(None),
    difficulty: Optional[str] = Query(None),
    min_price: Optional[Decimal] = Query(None),
    max_price: Optional[Decimal] = Query(None),
    services: Services = Depends(get_services),
):
    try:
        catalog_filter = CatalogFilter.model_validate(_plan_fields(
            category=category,
            category_exact=category_exact,
            machine_type=machine_type,
            difficulty=difficulty,
            min_price=min_price,
            max_price=max_price,
        ))
    except ValidationError as exc:
        raise BadRequestError(validation_message(exc)) from exc
    result = services.plan_catalog.list(catalog_filter, page=page, page_size=limit)
    return result.model_dump(mode="json")


@router.get("/search")
def search_plans(
    q: Optional[str] = Query(None),
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    services: Services = Depends(get_services),
):
    result = services.plan_catalog.search(q, page=page, page_size=limit)
    return result.model_dump(mode="json")


@router.get("/preview/{plan_id}")
def preview_plan(plan_id: str, services: Services = Depends(get_services)):
    """Redacted copy of the plan: only the preview pages, as a new PDF."""
    result = services.distribution.preview(plan_id)
    return Response(
        content=result.content,
        media_type=PDF_CONTENT_TYPE,
        headers={
            "Content-Disposition": content_disposition("inline", result.filename),
            "X-Preview-Pages": ",".join(str(p) for p in result.pages),
            "Cache-Control": f"public, max-age={services.settings.PREVIEW_CACHE_SECONDS}",
        },
    )


@router.get("/download/{plan_id}")
def download_plan(
    plan_id: str,
    user_id: Optional[str] = Query(None, alias="userId"),
    services: Services = Depends(get_services),
):
    """Full document for an entitled user."""
    result = services.distribution.download(plan_id, user_id)
    return Response(
        content=result.content,
        media_type=PDF_CONTENT_TYPE,
        headers={
            "Content-Disposition": content_disposition("attachment", result.filename),
            "Content-Length": str(len(result.content)),
        },
    )


@router.post("/purchase/{plan_id}")
def purchase_plan(
    plan_id: str,
    body: Optional[PurchaseRequest] = None,
    services: Services = Depends(get_services),
):
    """Record purchase intent; no payment is taken here."""
    body = body or PurchaseRequest()
    receipt = services.plans.purchase(plan_id, body.user_id, body.payment_method)
    return receipt.model_dump(mode="json")


@router.get("/{plan_id}")
def get_plan(plan_id: str, services: Services = Depends(get_services)):
    return services.plans.get(plan_id).model_dump(mode="json")


@router.patch("/{plan_id}")
def update_plan(
    plan_id: str,
    title: Optional[str] = Form(None),
    difficulty: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    machine_type: Optional[str] = Form(None),
    preview_pages: Optional[str] = Form(None),
    preview_description: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    version: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    services: Services = Depends(get_services),
):
    """Partial update. Metadata and a replacement document are applied together."""
    fields = _plan_fields(
        title=title,
        difficulty=difficulty,
        price=price,
        description=description,
        category=category,
        machine_type=machine_type,
        preview_pages=parse_page_list(preview_pages),
        preview_description=preview_description,
        author=author,
        version=version,
    )
    try:
        data = PlanUpdate.model_validate(fields)
    except ValidationError as exc:
        raise BadRequestError(validation_message(exc)) from exc

    content = read_pdf_upload(document, services.settings.MAX_DOCUMENT_BYTES)
    return services.plans.update(plan_id, data, content).model_dump(mode="json")


@router.put("/{plan_id}/document")
def replace_plan_document(
    plan_id: str,
    document: UploadFile = File(...),
    services: Services = Depends(get_services),
):
    """Replace only the stored PDF; the page count is recomputed from it."""
    content = read_pdf_upload(document, services.settings.MAX_DOCUMENT_BYTES)
    total_pages = services.assets.put(plan_id, content)
    return {"plan_id": plan_id, "total_pages": total_pages}


@router.delete("/{plan_id}", status_code=204)
def delete_plan(plan_id: str, services: Services = Depends(get_services)):
    services.plans.delete(plan_id)
    return Response(status_code=204)
