"""
Access Guard: pure decision for one navigation attempt.

Given auth state, entitlement state and the requested resource, say whether to
keep waiting, redirect (login or upgrade) or render. Rules are checked in order:

1. auth loading, or entitlement needed and still loading -> CHECKING
2. no user -> redirect to login, remembering where they were going
3. entitlement needed and no active access -> redirect to upgrade
4. entitlement needed and granted -> GRANTED_WITH_BANNER
5. otherwise -> GRANTED

Redirects are replace-navigations: the denied attempt leaves no history entry.
"""
import enum
from dataclasses import dataclass

from app.core.config import settings
from app.services.entitlement_query import EntitlementState, Identity
from app.services.route_catalog import Resource


class Outcome(str, enum.Enum):
    CHECKING = "checking"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_UPGRADE = "redirect_upgrade"
    GRANTED = "granted"
    GRANTED_WITH_BANNER = "granted_with_banner"


@dataclass(frozen=True)
class AuthState:
    identity: Identity | None
    loading: bool = False


@dataclass(frozen=True)
class GuardDecision:
    outcome: Outcome
    redirect_to: str | None = None
    from_location: str | None = None
    replace: bool = False

    @property
    def granted(self) -> bool:
        return self.outcome in (Outcome.GRANTED, Outcome.GRANTED_WITH_BANNER)

    @property
    def redirect(self) -> bool:
        return self.redirect_to is not None


CHECKING = GuardDecision(Outcome.CHECKING)


def decide(
    auth: AuthState,
    entitlement: EntitlementState | None,
    resource: Resource,
    *,
    location: str,
    entitlement_loading: bool = False,
    login_path: str | None = None,
    upgrade_path: str | None = None,
) -> GuardDecision:
    if not resource.requires_auth and not resource.requires_entitlement:
        # public page: nothing to guard
        return GuardDecision(Outcome.GRANTED)

    needs_entitlement = resource.requires_entitlement
    if auth.loading or (needs_entitlement and (entitlement_loading or entitlement is None)):
        return CHECKING

    if auth.identity is None:
        return GuardDecision(
            Outcome.REDIRECT_LOGIN,
            redirect_to=login_path or settings.login_path,
            from_location=location,
            replace=True,
        )

    if needs_entitlement and not entitlement.has_active_access:
        return GuardDecision(
            Outcome.REDIRECT_UPGRADE,
            redirect_to=upgrade_path or settings.upgrade_path,
            from_location=location,
            replace=True,
        )

    if needs_entitlement:
        return GuardDecision(Outcome.GRANTED_WITH_BANNER)

    return GuardDecision(Outcome.GRANTED)


# ---------------------------
# banner descriptors
# ---------------------------

@dataclass(frozen=True)
class Banner:
    variant: str
    message: str
    cta_label: str
    cta_path: str


# (placement, has_active_access) -> banner; None means render nothing
BANNERS: dict[tuple[str, bool], Banner | None] = {
    ("inline", False): Banner(
        variant="inline",
        message="Upgrade to access intermediate and advanced lessons, plus all premium features.",
        cta_label="View Pricing",
        cta_path="/pricing",
    ),
    ("full", False): Banner(
        variant="full",
        message="Upgrade to premium to unlock all content and features.",
        cta_label="Upgrade Now",
        cta_path="/pricing",
    ),
    ("inline", True): None,
    ("full", True): None,
}


def banner_for(entitlement: EntitlementState | None, placement: str = "full") -> Banner | None:
    has_access = bool(entitlement and entitlement.has_active_access)
    return BANNERS.get((placement, has_access))
