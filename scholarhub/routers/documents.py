from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from scholarhub.database import get_db
from scholarhub.dependencies import get_current_user, get_pipeline, require_admin
from scholarhub.models.document import Document
from scholarhub.schemas.auth import CurrentUser
from scholarhub.schemas.document import DocumentResponse, DocumentStatsResponse, DocumentVerifyRequest
from scholarhub.services.document_service import discard_staged, stage_upload
from scholarhub.services.ingestion_service import DocumentIngestionPipeline

router = APIRouter(
    prefix="/documents",
    tags=["documents"],
)


def _doc_to_response(doc: Document, url: str | None = None) -> DocumentResponse:
    return DocumentResponse(
        id=doc.id,
        application_id=doc.application_id,
        filename=doc.filename,
        original_name=doc.original_name,
        mime_type=doc.mime_type,
        size=doc.size,
        url=url or doc.url,
        document_type=doc.document_type,
        verified=bool(doc.verified),
        extracted_fields=doc.fields,
        verification_notes=doc.verification_notes,
        verified_at=doc.verified_at,
        uploaded_at=doc.uploaded_at,
    )


@router.post("/upload", response_model=DocumentResponse, status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    application_id: str = Form(...),
    document_type: str = Form(...),
    user: CurrentUser = Depends(get_current_user),
    pipeline: DocumentIngestionPipeline = Depends(get_pipeline),
    db: Session = Depends(get_db),
):
    staged = await stage_upload(file)
    try:
        doc = await pipeline.ingest(db, application_id, document_type, staged, user.id)
    except Exception:
        discard_staged(staged)
        raise
    return _doc_to_response(doc)


@router.get("/admin/stats", response_model=DocumentStatsResponse)
async def document_stats(
    _: CurrentUser = Depends(require_admin),
    pipeline: DocumentIngestionPipeline = Depends(get_pipeline),
    db: Session = Depends(get_db),
):
    return pipeline.stats(db)


@router.get("/application/{application_id}", response_model=list[DocumentResponse])
async def list_application_documents(
    application_id: str,
    user: CurrentUser = Depends(get_current_user),
    pipeline: DocumentIngestionPipeline = Depends(get_pipeline),
    db: Session = Depends(get_db),
):
    docs = pipeline.list_for_application(db, application_id, user)
    return [_doc_to_response(d, pipeline.access_url(d)) for d in docs]


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    user: CurrentUser = Depends(get_current_user),
    pipeline: DocumentIngestionPipeline = Depends(get_pipeline),
    db: Session = Depends(get_db),
):
    doc = pipeline.get(db, document_id, user)
    return _doc_to_response(doc, pipeline.access_url(doc))


@router.delete("/{document_id}")
async def delete_document(
    document_id: str,
    user: CurrentUser = Depends(get_current_user),
    pipeline: DocumentIngestionPipeline = Depends(get_pipeline),
    db: Session = Depends(get_db),
):
    pipeline.delete(db, document_id, user)
    return {"message": "Document deleted successfully"}


@router.put("/{document_id}/verify", response_model=DocumentResponse)
async def verify_document(
    document_id: str,
    req: DocumentVerifyRequest,
    admin: CurrentUser = Depends(require_admin),
    pipeline: DocumentIngestionPipeline = Depends(get_pipeline),
    db: Session = Depends(get_db),
):
    """Record a reviewer's decision, overriding the automatic classification."""
    doc = await pipeline.manual_verify(db, document_id, req.verified, req.notes, admin)
    return _doc_to_response(doc, pipeline.access_url(doc))
