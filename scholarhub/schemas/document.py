from enum import Enum
from typing import Any

from pydantic import BaseModel

# Names the original upload form used for the same kinds of document.
_TYPE_ALIASES = {
    "transcript": "previous_year_memo",
    "memo": "previous_year_memo",
    "recommendation": "recommendation_letter",
    "id": "identity_card",
    "identity": "identity_card",
}


class DocumentType(str, Enum):
    PREVIOUS_YEAR_MEMO = "previous_year_memo"
    CASTE_CERTIFICATE = "caste_certificate"
    IDENTITY_CARD = "identity_card"
    HEALTH_CERTIFICATE = "health_certificate"
    LEAGUE_CERTIFICATION = "league_certification"
    RECOMMENDATION_LETTER = "recommendation_letter"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value):
        if not isinstance(value, str):
            return None
        key = value.strip().lower().replace("-", "_").replace(" ", "_")
        key = _TYPE_ALIASES.get(key, key)
        for member in cls:
            if member.value == key:
                return member
        return None


class DocumentResponse(BaseModel):
    id: str
    application_id: str
    filename: str
    original_name: str
    mime_type: str
    size: int
    url: str
    document_type: str
    verified: bool
    extracted_fields: Any = None
    verification_notes: str | None
    verified_at: str | None
    uploaded_at: str


class DocumentVerifyRequest(BaseModel):
    verified: bool
    notes: str | None = None


class DocumentStatsResponse(BaseModel):
    total_documents: int
    verified_documents: int
    pending_documents: int
    avg_file_size: float | None
