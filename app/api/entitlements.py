from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import get_entitlement_service, get_optional_user, identity_of, require_admin
from app.core.errors import PersistenceFailure
from app.db.session import get_db
from app.models.user import User
from app.schemas.entitlement import EntitlementStateOut, OverrideIn, OverrideOut
from app.services.entitlement_query import EntitlementQueryService
from app.services.entitlement_store import override_status
from app.utils.dt import as_utc_aware

router = APIRouter(tags=["entitlements"])

# Current user's entitlement (read-only; nothing here can change it)
@router.get("/entitlements/me", response_model=EntitlementStateOut)
async def my_entitlement(
    user: User | None = Depends(get_optional_user),
    service: EntitlementQueryService = Depends(get_entitlement_service),
):
    state = await service.query(identity_of(user))
    return EntitlementStateOut(
        has_active_access=state.has_active_access,
        details=state.details,
        stale=state.stale,
        error=state.error,
    )

# Admin override, the one write path that isn't a verified webhook
@router.post("/admin/entitlements/{user_id}", response_model=OverrideOut)
async def override_entitlement(
    user_id: str,
    payload: OverrideIn,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
    service: EntitlementQueryService = Depends(get_entitlement_service),
):
    # the write runs in the threadpool, the cache is only touched on the loop
    try:
        ent = await run_in_threadpool(
            override_status, db, user_id, payload.subscription_status, actor_id=admin.id
        )
    except LookupError:
        raise HTTPException(status_code=404, detail="User not found")
    except PersistenceFailure as e:
        raise HTTPException(status_code=e.status_code, detail=e.public_message)

    service.invalidate(user_id)
    return OverrideOut(
        user_id=ent.user_id,
        subscription_status=ent.subscription_status,
        updated_at=as_utc_aware(ent.updated_at),
    )
