import logging

from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import SessionLocal, init_db
from app.models.plan import Plan

logger = logging.getLogger("app.seed_plans")

PLANS = [
    {"code": "premium", "name": "Premium",
      "description": "Access to all lessons (Beginner to Advanced), unlimited vocabulary practice, and all quizzes and exercises",
      "price_id": "price_1RKLGCAZyAKEiVfuqpDnIxcU", "interval": "month",
      "price": 4.99, "currency": "USD"},

    {"code": "annual", "name": "Annual",
      "description": "Save 16% with annual billing - access to all premium features",
      "price_id": "price_1RKLQCAZyAKEiVfuQyfLQsTi", "interval": "year",
      "price": 49.99, "currency": "USD"},
]

def upsert_plan(db: Session, data: dict) -> Plan:
    plan = db.query(Plan).filter(Plan.code == data["code"]).first()
    if plan:
        for k, v in data.items():
            setattr(plan, k, v)
        return plan

    plan = Plan(**data)
    db.add(plan)
    return plan

def main():
    configure_logging(settings.log_level, settings.app_env)
    init_db()
    db = SessionLocal()
    try:
        for data in PLANS:
            upsert_plan(db, data)
        db.commit()
        logger.info("Seeded plans: %s", [p["code"] for p in PLANS])
    finally:
        db.close()

if __name__ == "__main__":
    main()
