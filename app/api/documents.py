from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.api.deps import client_ip, get_current_user, get_db, get_workflow, user_agent
from app.models.organization import User
from app.schemas.audit import AuditEventRead
from app.schemas.document import (
    CertificateRead,
    DocumentCreate,
    DocumentRead,
    RemindRequest,
    VoidRequest,
)
from app.services.downloads import build_content_disposition
from app.services.workflow import Workflow

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
def create_document(
    payload: DocumentCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.documents.create(
        db, user, payload, ip_address=client_ip(request), user_agent=user_agent(request)
    )


@router.get("/{document_id}", response_model=DocumentRead)
def get_document(
    document_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.documents.get(db, user, document_id)


@router.post("/{document_id}/send")
def send_document(
    document_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: Workflow = Depends(get_workflow),
):
    result = workflow.documents.send(
        db, user, document_id, ip_address=client_ip(request), user_agent=user_agent(request)
    )
    return {
        "success": True,
        "status": result.document.status.value,
        "deliveries": [
            {"to": item.to, "success": item.success, "error": item.error}
            for item in result.deliveries
        ],
    }


@router.post("/{document_id}/remind")
def remind_recipient(
    document_id: str,
    payload: RemindRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: Workflow = Depends(get_workflow),
):
    workflow.documents.remind(
        db,
        user,
        document_id,
        payload.recipient_id,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True}


@router.post("/{document_id}/void", response_model=DocumentRead)
def void_document(
    document_id: str,
    request: Request,
    payload: VoidRequest | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.documents.void(
        db,
        user,
        document_id,
        reason=payload.reason if payload else None,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )


@router.get("/{document_id}/audit", response_model=list[AuditEventRead])
def document_audit_trail(
    document_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.documents.audit_trail(db, user, document_id)


@router.get("/{document_id}/certificate", response_model=CertificateRead)
def document_certificate(
    document_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.documents.certificate(db, user, document_id)


@router.get("/{document_id}/download")
def download_document(
    document_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: Workflow = Depends(get_workflow),
):
    downloaded = workflow.documents.download(
        db, user, document_id, ip_address=client_ip(request), user_agent=user_agent(request)
    )
    return Response(
        content=downloaded.content,
        media_type=downloaded.content_type,
        headers={"Content-Disposition": build_content_disposition(downloaded.filename)},
    )
