"""
Pattern-based verification of uploaded documents.

A document is marked verified only when its extracted text carries
structural evidence for the declared type. Anything else stays unverified
and goes to manual review. Only the first match per field is used.
"""
import re
from dataclasses import dataclass
from typing import Any, Callable

from scholarhub.schemas.document import DocumentType

GPA_RE = re.compile(r"GPA:?\s*([0-4](?:\.\d+)?)(?!\d)", re.IGNORECASE)
COURSE_CODE_RE = re.compile(r"\b[A-Z]{2,4} ?\d{3,4}\b")

RECOMMENDATION_KEYWORDS = ("recommend", "excellent", "outstanding", "pleasure", "endorse")
# A word count, not a character count.
MIN_RECOMMENDATION_WORDS = 200

NAME_RE = re.compile(
    r"\bName\b[ \t]*:?[ \t]*([A-Za-z][A-Za-z ]*?)[ \t]*"
    r"(?=[ \t]+(?:DOB|D\.O\.B|Date of Birth|ID)\b|[^A-Za-z ]|$)",
    re.IGNORECASE | re.MULTILINE,
)
DOB_RE = re.compile(
    r"\b(?:DOB|D\.O\.B\.?|Date of Birth)[ \t]*:?[ \t]*(\d{1,2}[-/]\d{1,2}[-/]\d{4})",
    re.IGNORECASE,
)
ID_RE = re.compile(
    r"\bID\b(?:[ \t]*(?:No\.?|Number))?[ \t]*[:#]?[ \t]*(?!(?:Card|No|Number)\b)([A-Z0-9]+)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Classification:
    verified: bool
    extracted_fields: dict[str, Any] | None = None

    @classmethod
    def unverified(cls) -> "Classification":
        return cls(verified=False, extracted_fields=None)


def verify_transcript(text: str) -> Classification:
    gpa_match = GPA_RE.search(text)
    courses = COURSE_CODE_RE.findall(text)
    return Classification(
        verified=bool(gpa_match or courses),
        extracted_fields={
            "gpa": float(gpa_match.group(1)) if gpa_match else None,
            "coursesCount": len(courses),
        },
    )


def verify_recommendation(text: str) -> Classification:
    lowered = text.lower()
    has_keywords = any(keyword in lowered for keyword in RECOMMENDATION_KEYWORDS)
    word_count = len(text.split())
    return Classification(
        verified=has_keywords and word_count > MIN_RECOMMENDATION_WORDS,
        extracted_fields={"wordCount": word_count, "hasKeywords": has_keywords},
    )


def verify_identity(text: str) -> Classification:
    name_match = NAME_RE.search(text)
    dob_match = DOB_RE.search(text)
    id_match = ID_RE.search(text)
    name = name_match.group(1).strip() if name_match else None
    return Classification(
        verified=bool(name and (dob_match or id_match)),
        extracted_fields={
            "name": name or None,
            "dob": dob_match.group(1) if dob_match else None,
            "id": id_match.group(1) if id_match else None,
        },
    )


HEURISTICS: dict[DocumentType, Callable[[str], Classification]] = {
    DocumentType.PREVIOUS_YEAR_MEMO: verify_transcript,
    DocumentType.RECOMMENDATION_LETTER: verify_recommendation,
    DocumentType.IDENTITY_CARD: verify_identity,
}


def resolve_document_type(document_type: DocumentType | str) -> DocumentType | None:
    try:
        return DocumentType(document_type)
    except ValueError:
        return None


def classify(extracted_text: str | None, document_type: DocumentType | str) -> Classification:
    """Apply the heuristic registered for `document_type`.

    Types without a heuristic, and unknown types, are never verified.
    """
    heuristic = HEURISTICS.get(resolve_document_type(document_type))
    if heuristic is None:
        return Classification.unverified()
    return heuristic(extracted_text or "")
