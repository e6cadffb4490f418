from dataclasses import dataclass


@dataclass(frozen=True)
class Resource:
    path: str
    requires_auth: bool = True
    requires_entitlement: bool = False


PUBLIC = "public"
MEMBERS = "members"
SUBSCRIBERS = "subscribers"

_SENSITIVITY = {
    PUBLIC: (False, False),
    MEMBERS: (True, False),
    SUBSCRIBERS: (True, True),
}

# path prefix -> sensitivity; longest prefix wins
ROUTES: dict[str, str] = {
    "/": PUBLIC,
    "/login": PUBLIC,
    "/signup": PUBLIC,
    "/confirmation": PUBLIC,
    "/pricing": PUBLIC,
    "/support": PUBLIC,
    "/contact": PUBLIC,
    "/faq": PUBLIC,
    "/privacy": PUBLIC,
    "/terms": PUBLIC,
    "/404": PUBLIC,
    "/beginner": MEMBERS,
    "/vocabulary": MEMBERS,
    "/quizzes": MEMBERS,
    "/achievements": MEMBERS,
    "/learning-tips": MEMBERS,
    "/settings": MEMBERS,
    "/intermediate": SUBSCRIBERS,
    "/advanced": SUBSCRIBERS,
}

LEVELS: dict[str, str] = {
    "beginner": MEMBERS,
    "intermediate": SUBSCRIBERS,
    "advanced": SUBSCRIBERS,
}


def normalize(path: str) -> str:
    path = "/" + path.split("?", 1)[0].split("#", 1)[0].strip("/")
    return path


def _matches(path: str, prefix: str) -> bool:
    if prefix == "/":
        return path == "/"
    return path == prefix or path.startswith(prefix + "/")


def resolve(path: str) -> Resource:
    """Sensitivity of a path. Unknown paths need a login."""
    path = normalize(path)
    best = None
    for prefix in ROUTES:
        if _matches(path, prefix) and (best is None or len(prefix) > len(best)):
            best = prefix

    requires_auth, requires_entitlement = _SENSITIVITY[ROUTES[best] if best else MEMBERS]
    return Resource(path=path, requires_auth=requires_auth, requires_entitlement=requires_entitlement)
