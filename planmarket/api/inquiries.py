"""Contact form and order notification endpoints (email only, nothing stored)."""

from fastapi import APIRouter, Depends

from planmarket.api.deps import get_services
from planmarket.models.inquiry import ContactMessage, OrderNotification
from planmarket.services import Services

router = APIRouter(prefix="/api", tags=["inquiries"])


@router.post("/contact")
def send_contact(body: ContactMessage, services: Services = Depends(get_services)):
    return services.inquiries.send_contact(body).model_dump()


@router.post("/orders")
def send_order(body: OrderNotification, services: Services = Depends(get_services)):
    return services.inquiries.send_order(body).model_dump()
