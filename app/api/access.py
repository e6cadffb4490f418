from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_entitlement_service, get_optional_user
from app.api.deps_entitlements import evaluate_access, require_lesson_access
from app.models.user import User
from app.schemas.access import AccessDecisionOut, BannerOut, LessonAccessOut
from app.services.access_guard import Outcome, banner_for
from app.services.entitlement_query import EntitlementQueryService, EntitlementState
from app.services.route_catalog import normalize

router = APIRouter(tags=["access"])

def _banner(entitlement: EntitlementState | None, placement: str) -> BannerOut | None:
    banner = banner_for(entitlement, placement)
    return BannerOut(**asdict(banner)) if banner else None

# Guard decision for the UI: render, or where to redirect
@router.get("/access/check", response_model=AccessDecisionOut)
async def check_access(
    path: str = Query(..., min_length=1),
    user: User | None = Depends(get_optional_user),
    service: EntitlementQueryService = Depends(get_entitlement_service),
):
    decision, entitlement = await evaluate_access(path, user, service)
    banner = None
    if decision.outcome == Outcome.GRANTED_WITH_BANNER:
        banner = _banner(entitlement, "full")

    return AccessDecisionOut(
        path=normalize(path),
        outcome=decision.outcome.value,
        redirect_to=decision.redirect_to,
        from_location=decision.from_location,
        replace=decision.replace,
        banner=banner,
    )

# Gated lesson endpoint; content itself is served by the frontend
@router.get("/lessons/{level}/{slug}", response_model=LessonAccessOut)
def lesson(
    level: str,
    slug: str,
    entitlement: EntitlementState | None = Depends(require_lesson_access),
):
    return LessonAccessOut(level=level, slug=slug, banner=_banner(entitlement, "inline"))
