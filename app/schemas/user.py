from pydantic import BaseModel

class UserOut(BaseModel):
    id: str
    email: str
    display_name: str | None
    is_admin: bool

    class Config:
        from_attributes = True
