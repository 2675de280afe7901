from sqlalchemy import Column, ForeignKey, Text
from sqlalchemy.orm import relationship
from scholarhub.database import Base


class Application(Base):
    __tablename__ = "applications"

    id = Column(Text, primary_key=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    scholarship_id = Column(Text, ForeignKey("scholarships.id", ondelete="CASCADE"), nullable=False)
    status = Column(Text, nullable=False, default="pending")
    submitted_at = Column(Text, nullable=False)

    user = relationship("User", back_populates="applications")
    documents = relationship("Document", back_populates="application", cascade="all, delete-orphan")
