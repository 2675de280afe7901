from sqlalchemy import Column, Text
from sqlalchemy.orm import relationship
from scholarhub.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Text, primary_key=True)
    email = Column(Text, nullable=False, unique=True)
    first_name = Column(Text)
    last_name = Column(Text)
    role = Column(Text, nullable=False, default="student")
    created_at = Column(Text, nullable=False)

    applications = relationship("Application", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or self.email
