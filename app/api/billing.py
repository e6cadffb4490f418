from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.api.deps import get_current_user
from app.core.errors import Misconfigured, PaymentProviderError
from app.models.plan import Plan
from app.models.user import User
from app.integrations.stripe_client import create_checkout_session, create_portal_session
from app.schemas.billing import PlanOut, CheckoutIn, CheckoutOut, PortalIn, PortalOut

router = APIRouter(prefix="/billing", tags=["billing"])

# Display available subscription plans
@router.get("/plans", response_model=list[PlanOut])
def list_plans(db: Session = Depends(get_db)):
    return db.query(Plan).filter(Plan.active.is_(True)).order_by(Plan.price).all()

# Create a hosted checkout session; the browser is sent to `url`
@router.post("/checkout", response_model=CheckoutOut)
def create_checkout(
    payload: CheckoutIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    plan = db.query(Plan).filter(Plan.price_id == payload.price_id, Plan.active.is_(True)).first()
    if not plan:
        raise HTTPException(status_code=400, detail="Unknown price")

    # Access is only granted later, by the checkout.session.completed webhook
    try:
        session = create_checkout_session(
            user_id=user.id,
            price_id=plan.price_id,
            success_url=payload.success_url or f"{settings.app_base_url}/settings?checkout=success",
            cancel_url=payload.cancel_url or f"{settings.app_base_url}/pricing",
            mode=payload.mode,
            customer_id=user.stripe_customer_id,
            customer_email=user.email,
        )
    except Misconfigured as e:
        raise HTTPException(status_code=500, detail=e.public_message)
    except PaymentProviderError as e:
        raise HTTPException(status_code=502, detail=e.public_message)

    return CheckoutOut(**session)

# Customer self-service (cancel, change card, invoices)
@router.post("/portal", response_model=PortalOut)
def create_portal(payload: PortalIn, user: User = Depends(get_current_user)):
    if not user.stripe_customer_id:
        raise HTTPException(status_code=404, detail="No billing account yet. Complete checkout first.")

    try:
        session = create_portal_session(customer_id=user.stripe_customer_id, return_url=payload.return_url)
    except Misconfigured as e:
        raise HTTPException(status_code=500, detail=e.public_message)
    except PaymentProviderError as e:
        raise HTTPException(status_code=502, detail=e.public_message)

    return PortalOut(**session)
