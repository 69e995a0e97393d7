"""Token-authenticated routes used by recipients. No login is involved."""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from app.api.deps import client_ip, get_db, get_workflow, user_agent
from app.schemas.signing import DeclineRequest, SigningRoomRead, SignResult, SignSubmit
from app.services.downloads import build_content_disposition
from app.services.workflow import Workflow

router = APIRouter(tags=["public"])


@router.get("/sign/{token}", response_model=SigningRoomRead)
def open_signing_room(
    token: str,
    request: Request,
    db: Session = Depends(get_db),
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.signing.open(
        db, token, ip_address=client_ip(request), user_agent=user_agent(request)
    )


@router.post("/sign/{token}", response_model=SignResult)
def submit_signature(
    token: str,
    payload: SignSubmit,
    request: Request,
    db: Session = Depends(get_db),
    workflow: Workflow = Depends(get_workflow),
):
    return workflow.signing.submit(
        db,
        token,
        payload.field_values,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )


@router.post("/sign/{token}/decline")
def decline_document(
    token: str,
    request: Request,
    payload: DeclineRequest | None = None,
    db: Session = Depends(get_db),
    workflow: Workflow = Depends(get_workflow),
):
    workflow.signing.decline(
        db,
        token,
        reason=payload.reason if payload else None,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    return {"success": True}


@router.get("/download/{token}")
def download_signed_document(
    token: str,
    request: Request,
    db: Session = Depends(get_db),
    workflow: Workflow = Depends(get_workflow),
):
    downloaded = workflow.downloads.download(
        db, token, ip_address=client_ip(request), user_agent=user_agent(request)
    )
    return Response(
        content=downloaded.content,
        media_type=downloaded.content_type,
        headers={"Content-Disposition": build_content_disposition(downloaded.filename)},
    )
