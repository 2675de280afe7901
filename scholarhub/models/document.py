from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from scholarhub.database import Base
from scholarhub.utils.payload import load_payload


class Document(Base):
    __tablename__ = "documents"

    id = Column(Text, primary_key=True)
    application_id = Column(Text, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False)
    filename = Column(Text, nullable=False)
    original_name = Column(Text, nullable=False)
    mime_type = Column(Text, nullable=False)
    size = Column(Integer, nullable=False)
    storage_key = Column(Text, nullable=False)
    url = Column(Text, nullable=False)
    document_type = Column(Text, nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    extracted_fields = Column(Text)
    verification_notes = Column(Text)
    verified_at = Column(Text)
    uploaded_at = Column(Text, nullable=False)

    application = relationship("Application", back_populates="documents")

    @property
    def fields(self):
        return load_payload(self.extracted_fields)
