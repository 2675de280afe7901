from pydantic import BaseModel


class CurrentUser(BaseModel):
    id: str
    role: str = "student"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
