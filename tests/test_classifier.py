from scholarhub.schemas.document import DocumentType
from scholarhub.services.classifier import classify, resolve_document_type


def _letter(words: int, keyword: str = "recommend") -> str:
    return " ".join([f"I {keyword} this student."] + ["diligent"] * (words - 4))


class TestTranscriptHeuristic:
    def test_gpa_and_courses(self):
        result = classify("GPA: 3.8\nCS101 Intro to Programming\nMATH 201 Calculus", "previous_year_memo")
        assert result.verified is True
        assert result.extracted_fields == {"gpa": 3.8, "coursesCount": 2}

    def test_gpa_only(self):
        result = classify("Cumulative gpa 3.25", DocumentType.PREVIOUS_YEAR_MEMO)
        assert result.verified is True
        assert result.extracted_fields["gpa"] == 3.25
        assert result.extracted_fields["coursesCount"] == 0

    def test_courses_only(self):
        result = classify("Completed BIO 1010 and CHEM 220", "previous_year_memo")
        assert result.verified is True
        assert result.extracted_fields == {"gpa": None, "coursesCount": 2}

    def test_no_evidence(self):
        result = classify("Dear committee, please find attached.", "previous_year_memo")
        assert result.verified is False
        assert result.extracted_fields == {"gpa": None, "coursesCount": 0}

    def test_alias_transcript(self):
        assert classify("GPA: 4.0", "transcript").verified is True


class TestRecommendationHeuristic:
    def test_long_letter_with_keyword(self):
        result = classify(_letter(250), "recommendation_letter")
        assert result.verified is True
        assert result.extracted_fields == {"wordCount": 250, "hasKeywords": True}

    def test_short_letter_fails(self):
        result = classify(_letter(50, "highly recommend"), "recommendation_letter")
        assert result.verified is False
        assert result.extracted_fields["hasKeywords"] is True

    def test_long_letter_without_keyword(self):
        text = " ".join(["average"] * 300)
        result = classify(text, "recommendation")
        assert result.verified is False
        assert result.extracted_fields == {"wordCount": 300, "hasKeywords": False}

    def test_keyword_case_insensitive(self):
        assert classify(_letter(220, "OUTSTANDING"), "recommendation_letter").verified is True


class TestIdentityHeuristic:
    def test_name_and_dob(self):
        result = classify("Name: Jane Doe\nDOB: 05/12/1999", "identity_card")
        assert result.verified is True
        assert result.extracted_fields == {"name": "Jane Doe", "dob": "05/12/1999", "id": None}

    def test_name_and_id(self):
        result = classify("NAME JOHN SMITH\nID No: AB123456", "identity_card")
        assert result.verified is True
        assert result.extracted_fields["name"] == "JOHN SMITH"
        assert result.extracted_fields["id"] == "AB123456"

    def test_letters_only_id(self):
        result = classify("Name: Jane Doe\nID: ABCDEF", "identity_card")
        assert result.verified is True
        assert result.extracted_fields["id"] == "ABCDEF"

    def test_id_card_label_is_not_an_id(self):
        result = classify("Student ID Card\nName: Jane Doe\nID: X12", "identity_card")
        assert result.extracted_fields["id"] == "X12"

    def test_name_without_dob_or_id(self):
        result = classify("Name: Jane Doe\nAddress: 1 Main St", "identity_card")
        assert result.verified is False
        assert result.extracted_fields["name"] == "Jane Doe"

    def test_dob_without_name(self):
        result = classify("Date of Birth: 1-2-2001", "identity_card")
        assert result.verified is False
        assert result.extracted_fields["dob"] == "1-2-2001"


class TestUnclassifiedTypes:
    def test_types_without_heuristic(self):
        for doc_type in ("caste_certificate", "health_certificate", "league_certification", "other"):
            result = classify("GPA: 4.0 Name: Jane DOB: 01/01/2000", doc_type)
            assert result.verified is False
            assert result.extracted_fields is None

    def test_unknown_type(self):
        assert resolve_document_type("passport_photo") is None
        result = classify("GPA: 4.0", "passport_photo")
        assert result.verified is False
        assert result.extracted_fields is None

    def test_empty_text(self):
        assert classify("", "previous_year_memo").verified is False
        assert classify(None, "identity_card").verified is False
