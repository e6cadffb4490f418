import pytest

from app.services.access_guard import AuthState, Outcome, banner_for, decide
from app.services.entitlement_query import EntitlementState, Identity
from app.services.route_catalog import Resource, normalize, resolve

GATED = Resource(path="/intermediate/grammar", requires_auth=True, requires_entitlement=True)
MEMBERS_ONLY = Resource(path="/beginner/alphabet", requires_auth=True, requires_entitlement=False)
PUBLIC = Resource(path="/pricing", requires_auth=False, requires_entitlement=False)

USER = Identity(user_id="user_1")
SUBSCRIBED = EntitlementState(has_active_access=True)
FREE = EntitlementState(has_active_access=False)


def test_waits_while_auth_is_loading():
    decision = decide(AuthState(identity=None, loading=True), None, MEMBERS_ONLY, location="/beginner")
    assert decision.outcome == Outcome.CHECKING
    assert decision.redirect_to is None


def test_waits_for_entitlement_on_gated_resource():
    decision = decide(AuthState(USER), FREE, GATED, location=GATED.path, entitlement_loading=True)
    assert decision.outcome == Outcome.CHECKING

    decision = decide(AuthState(USER), None, GATED, location=GATED.path)
    assert decision.outcome == Outcome.CHECKING


def test_entitlement_loading_ignored_for_members_only_resource():
    decision = decide(AuthState(USER), None, MEMBERS_ONLY, location=MEMBERS_ONLY.path, entitlement_loading=True)
    assert decision.outcome == Outcome.GRANTED


@pytest.mark.parametrize("resource", [GATED, MEMBERS_ONLY])
def test_unauthenticated_redirects_to_login_preserving_location(resource):
    decision = decide(AuthState(None), FREE, resource, location=resource.path)

    assert decision.outcome == Outcome.REDIRECT_LOGIN
    assert decision.redirect_to == "/login"
    assert decision.from_location == resource.path
    assert decision.replace is True
    assert decision.granted is False


def test_non_subscriber_redirected_to_upgrade():
    decision = decide(AuthState(USER), FREE, GATED, location=GATED.path)

    assert decision.outcome == Outcome.REDIRECT_UPGRADE
    assert decision.redirect_to == "/pricing"
    assert decision.from_location == GATED.path
    assert decision.replace is True
    assert decision.granted is False


def test_subscriber_granted_with_banner():
    decision = decide(AuthState(USER), SUBSCRIBED, GATED, location=GATED.path)
    assert decision.outcome == Outcome.GRANTED_WITH_BANNER
    assert decision.granted is True
    assert decision.redirect is False


def test_members_only_granted_plain():
    decision = decide(AuthState(USER), FREE, MEMBERS_ONLY, location=MEMBERS_ONLY.path)
    assert decision.outcome == Outcome.GRANTED


def test_public_resource_needs_nothing():
    decision = decide(AuthState(None, loading=True), None, PUBLIC, location="/pricing")
    assert decision.outcome == Outcome.GRANTED


def test_custom_redirect_paths():
    decision = decide(AuthState(USER), FREE, GATED, location=GATED.path, upgrade_path="/upgrade")
    assert decision.redirect_to == "/upgrade"


@pytest.mark.parametrize("path, auth, entitlement", [
    ("/", False, False),
    ("/pricing", False, False),
    ("/login", False, False),
    ("/beginner", True, False),
    ("/beginner/quiz/animals", True, False),
    ("/settings", True, False),
    ("/intermediate", True, True),
    ("/intermediate/grammar", True, True),
    ("/advanced/quiz/idioms", True, True),
    ("/something-unknown", True, False),
])
def test_route_catalog(path, auth, entitlement):
    resource = resolve(path)
    assert resource.requires_auth is auth
    assert resource.requires_entitlement is entitlement


def test_route_catalog_does_not_match_partial_segments():
    # "/advancedish" must not inherit "/advanced"
    assert resolve("/advancedish").requires_entitlement is False


def test_normalize_strips_query_and_slashes():
    assert normalize("intermediate/grammar/?tab=2") == "/intermediate/grammar"
    assert normalize("") == "/"


def test_banner_only_for_non_subscribers():
    assert banner_for(SUBSCRIBED, "full") is None
    assert banner_for(FREE, "full").cta_path == "/pricing"
    assert banner_for(None, "inline").variant == "inline"
