from pydantic import BaseModel

class BannerOut(BaseModel):
    variant: str
    message: str
    cta_label: str
    cta_path: str

class AccessDecisionOut(BaseModel):
    path: str
    outcome: str
    redirect_to: str | None = None
    from_location: str | None = None
    replace: bool = False
    banner: BannerOut | None = None

class LessonAccessOut(BaseModel):
    level: str
    slug: str
    banner: BannerOut | None = None
