from sqlalchemy import Boolean, Column, ForeignKey, Text
from sqlalchemy.orm import relationship
from scholarhub.database import Base
from scholarhub.utils.payload import load_payload


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Text, primary_key=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    data = Column(Text)
    read = Column("is_read", Boolean, nullable=False, default=False)
    created_at = Column(Text, nullable=False)

    user = relationship("User", back_populates="notifications")

    @property
    def payload(self):
        return load_payload(self.data)
