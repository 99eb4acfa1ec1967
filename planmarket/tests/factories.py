"""Record builders shared by repository and service tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from planmarket.models.plan import Difficulty, PlanRecord

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def plan_record(plan_id: str, *, minutes: int = 0, document: bytes = None, total_pages: int = None, **overrides) -> PlanRecord:
    """A plan created ``minutes`` after EPOCH."""
    created = EPOCH + timedelta(minutes=minutes)
    values = dict(
        plan_id=plan_id,
        title=f"Plan {plan_id}",
        description="",
        category="Router",
        machine_type="CNC",
        difficulty=Difficulty.BASIC,
        document=document,
        has_document=document is not None,
        total_pages=total_pages,
        preview_pages=[],
        price=Decimal("10.00"),
        created_at=created,
        updated_at=created,
    )
    values.update(overrides)
    return PlanRecord(**values)
