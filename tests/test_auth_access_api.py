import inspect

from app.api.auth import logout
from app.api.entitlements import override_entitlement
from tests.utils import auth_headers, create_record, create_user, post_event, subscription_event


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ---------------------------
# auth
# ---------------------------

def test_register_login_me(client):
    resp = client.post("/auth/register", json={"email": "ana@lingua.dev", "password": "s3cret-pass"})
    assert resp.status_code == 200
    assert resp.json()["display_name"] == "ana"
    assert resp.json()["is_admin"] is False

    token = client.post("/auth/login", json={"email": "ana@lingua.dev", "password": "s3cret-pass"}).json()["access_token"]
    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert me.status_code == 200
    assert me.json()["email"] == "ana@lingua.dev"


def test_register_duplicate_email(client):
    payload = {"email": "ana@lingua.dev", "password": "s3cret-pass"}
    client.post("/auth/register", json=payload)
    assert client.post("/auth/register", json=payload).status_code == 400


def test_login_wrong_password(client):
    client.post("/auth/register", json={"email": "ana@lingua.dev", "password": "s3cret-pass"})
    resp = client.post("/auth/login", json={"email": "ana@lingua.dev", "password": "wrong-pass"})
    assert resp.status_code == 401


def test_bad_token_rejected(client):
    resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_logout_drops_cached_entitlement(client, db, app):
    user = create_user(db, "ana@lingua.dev")
    client.get("/entitlements/me", headers=auth_headers(user))
    service = app.state.entitlement_service
    assert service._cache.peek(user.id) is not None

    resp = client.post("/auth/logout", headers=auth_headers(user))

    assert resp.status_code == 204
    assert service._cache.peek(user.id) is None


# ---------------------------
# entitlement read + admin override
# ---------------------------

def test_anonymous_entitlement_is_no_access(client):
    body = client.get("/entitlements/me").json()
    assert body["hasActiveAccess"] is False
    assert body["details"] is None


def test_admin_always_has_access(client, db):
    admin = create_user(db, "admin@lingua.dev", is_admin=True)

    assert client.get("/entitlements/me", headers=auth_headers(admin)).json()["hasActiveAccess"] is True
    decision = client.get("/access/check", params={"path": "/advanced"}, headers=auth_headers(admin)).json()
    assert decision["outcome"] == "granted_with_banner"


def test_override_requires_admin(client, db):
    user = create_user(db, "ana@lingua.dev")

    resp = client.post(f"/admin/entitlements/{user.id}", json={"subscription_status": "active"}, headers=auth_headers(user))

    assert resp.status_code == 403


def test_override_takes_effect_immediately(client, db):
    admin = create_user(db, "admin@lingua.dev", is_admin=True)
    user = create_user(db, "ana@lingua.dev")
    # cache "no access" first
    assert client.get("/entitlements/me", headers=auth_headers(user)).json()["hasActiveAccess"] is False

    resp = client.post(f"/admin/entitlements/{user.id}", json={"subscription_status": "trialing"}, headers=auth_headers(admin))

    assert resp.status_code == 200
    assert resp.json()["subscription_status"] == "trialing"
    assert client.get("/entitlements/me", headers=auth_headers(user)).json()["hasActiveAccess"] is True


def test_override_unknown_user_or_status(client, db):
    admin = create_user(db, "admin@lingua.dev", is_admin=True)

    missing = client.post("/admin/entitlements/nobody", json={"subscription_status": "active"}, headers=auth_headers(admin))
    invalid = client.post(f"/admin/entitlements/{admin.id}", json={"subscription_status": "gold"}, headers=auth_headers(admin))

    assert missing.status_code == 404
    assert invalid.status_code == 422


# ---------------------------
# access check + lessons
# ---------------------------

def test_anonymous_sent_to_login(client):
    decision = client.get("/access/check", params={"path": "/beginner/alphabet?x=1"}).json()

    assert decision["outcome"] == "redirect_login"
    assert decision["redirect_to"] == "/login"
    assert decision["from_location"] == "/beginner/alphabet?x=1"
    assert decision["replace"] is True


def test_public_page_granted_to_anyone(client):
    decision = client.get("/access/check", params={"path": "/pricing"}).json()
    assert decision["outcome"] == "granted"


def test_lesson_requires_login(client):
    resp = client.get("/lessons/intermediate/grammar")
    assert resp.status_code == 401
    assert resp.json()["detail"]["redirect"] == "/login"


def test_lesson_requires_subscription(client, db):
    user = create_user(db, "ana@lingua.dev")

    resp = client.get("/lessons/advanced/idioms", headers=auth_headers(user))

    assert resp.status_code == 402
    assert resp.json()["detail"] == {"redirect": "/pricing", "from": "/advanced/idioms"}


def test_free_lesson_carries_upgrade_banner(client, db):
    user = create_user(db, "ana@lingua.dev")

    resp = client.get("/lessons/beginner/alphabet", headers=auth_headers(user))

    assert resp.status_code == 200
    assert resp.json()["banner"]["variant"] == "inline"
    assert resp.json()["banner"]["cta_path"] == "/pricing"


def test_subscriber_lesson_has_no_banner(client, db):
    user = create_user(db, "ana@lingua.dev", customer="cus_123")
    create_record(db, user, "active", subscription_id="sub_123")

    resp = client.get("/lessons/beginner/alphabet", headers=auth_headers(user))

    assert resp.status_code == 200
    assert resp.json()["banner"] is None


def test_unknown_level_is_404(client, db):
    user = create_user(db, "ana@lingua.dev")
    assert client.get("/lessons/expert/x", headers=auth_headers(user)).status_code == 404


def test_past_due_loses_gated_lessons(client, db):
    user = create_user(db, "ana@lingua.dev", customer="cus_123")
    create_record(db, user, "active", subscription_id="sub_123")
    assert client.get("/lessons/intermediate/verbs", headers=auth_headers(user)).status_code == 200

    post_event(client, subscription_event("customer.subscription.updated", status="past_due"))

    assert client.get("/lessons/intermediate/verbs", headers=auth_headers(user)).status_code == 402


def test_lesson_redirect_keeps_query_string(client, db):
    user = create_user(db, "ana@lingua.dev")

    resp = client.get("/lessons/advanced/idioms?step=3", headers=auth_headers(user))

    assert resp.status_code == 402
    assert resp.json()["detail"]["from"] == "/advanced/idioms?step=3"


def test_access_check_keeps_fragment_and_query(client, db):
    user = create_user(db, "ana@lingua.dev")

    decision = client.get(
        "/access/check", params={"path": "intermediate/grammar?tab=2#verbs"}, headers=auth_headers(user)
    ).json()

    assert decision["outcome"] == "redirect_upgrade"
    assert decision["path"] == "/intermediate/grammar"
    assert decision["from_location"] == "/intermediate/grammar?tab=2#verbs"


def test_entitlement_payload_is_camel_case_throughout(client, db):
    user = create_user(db, "ana@lingua.dev", customer="cus_123")
    create_record(db, user, "trialing", subscription_id="sub_123", price_id="price_premium")

    body = client.get("/entitlements/me", headers=auth_headers(user)).json()

    assert set(body) == {"hasActiveAccess", "details", "stale", "error"}
    assert set(body["details"]) == {
        "userId",
        "subscriptionStatus",
        "subscriptionId",
        "priceId",
        "customerId",
        "currentPeriodEnd",
        "cancelAtPeriodEnd",
        "updatedAt",
    }
    assert body["details"]["subscriptionStatus"] == "trialing"


def test_cache_invalidating_endpoints_run_on_the_event_loop():
    # sync endpoints would run in the threadpool, racing query() on the loop
    assert inspect.iscoroutinefunction(logout)
    assert inspect.iscoroutinefunction(override_entitlement)


def test_demoted_admin_token_rejected(client, db):
    admin = create_user(db, "admin@lingua.dev", is_admin=True)
    headers = auth_headers(admin)
    admin.is_admin = False
    db.commit()

    assert client.get("/auth/me", headers=headers).status_code == 401
