from fastapi import Depends, HTTPException, Request

from app.api.deps import get_entitlement_service, get_optional_user, identity_of
from app.models.user import User
from app.services.access_guard import AuthState, GuardDecision, Outcome, decide
from app.services.entitlement_query import EntitlementQueryService, EntitlementState
from app.services.route_catalog import LEVELS, MEMBERS, resolve

def requested_location(path: str) -> str:
    # query and fragment are kept; this is where the client returns to
    return path if path.startswith("/") else "/" + path

async def evaluate_access(
    path: str,
    user: User | None,
    service: EntitlementQueryService,
) -> tuple[GuardDecision, EntitlementState | None]:
    resource = resolve(path)
    identity = identity_of(user)

    entitlement = None
    if resource.requires_entitlement:
        entitlement = await service.query(identity)

    decision = decide(AuthState(identity=identity), entitlement, resource, location=requested_location(path))
    return decision, entitlement

def raise_for_decision(decision: GuardDecision) -> None:
    if decision.granted:
        return
    detail = {"redirect": decision.redirect_to, "from": decision.from_location}
    if decision.outcome == Outcome.REDIRECT_LOGIN:
        raise HTTPException(status_code=401, detail=detail)
    if decision.outcome == Outcome.REDIRECT_UPGRADE:
        raise HTTPException(status_code=402, detail=detail)
    # server side everything is resolved before deciding; treat anything else as "retry"
    raise HTTPException(status_code=503, detail="Access check pending, please retry")

async def require_lesson_access(
    level: str,
    slug: str,
    request: Request,
    user: User | None = Depends(get_optional_user),
    service: EntitlementQueryService = Depends(get_entitlement_service),
) -> EntitlementState | None:
    if level not in LEVELS:
        raise HTTPException(status_code=404, detail="Unknown level")
    location = f"/{level}/{slug}"
    if request.url.query:
        location = f"{location}?{request.url.query}"
    decision, entitlement = await evaluate_access(location, user, service)
    raise_for_decision(decision)
    # members-only levels still carry the inline upsell keyed off entitlement state
    if entitlement is None and LEVELS[level] == MEMBERS and user is not None:
        entitlement = await service.query(identity_of(user))
    return entitlement
