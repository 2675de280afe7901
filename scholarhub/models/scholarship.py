from sqlalchemy import Boolean, Column, ForeignKey, Text
from scholarhub.database import Base


class Scholarship(Base):
    __tablename__ = "scholarships"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    category = Column(Text)
    deadline = Column(Text)  # YYYY-MM-DD
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(Text, nullable=False)


class SavedScholarship(Base):
    __tablename__ = "saved_scholarships"

    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    scholarship_id = Column(Text, ForeignKey("scholarships.id", ondelete="CASCADE"), primary_key=True)
    saved_at = Column(Text, nullable=False)
