from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import (
    get_current_user,
    get_document_renderer,
    require_roles,
    require_self_or_admin,
)
from app.core.permissions import is_self_or_admin
from app.database import get_db, unit_of_work
from app.schemas import (
    CertificateCreate,
    CertificateRead,
    ContractRead,
    ContractRevise,
    ContractSign,
    VaultRead,
)
from app.services import contracts as contract_service
from app.services.document_pdf import contract_pdf_bytes
from app.services.documents import DocumentRenderer
from app.services.masterpieces import generate_certificate

router = APIRouter(tags=["contracts"])

_admin = require_roles(models.RoleName.admin)


def _visible_contract(db: Session, contract_id: int, user: models.User) -> models.Contract:
    contract = contract_service.get_contract(db, contract_id)
    if not is_self_or_admin(user, contract.user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
    return contract


@router.get("/contracts/user/{user_id}", response_model=List[ContractRead])
def list_user_contracts(
    user_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(require_self_or_admin),  # noqa: B008
):
    return (
        db.query(models.Contract)
        .filter(models.Contract.user_id == user_id)
        .order_by(models.Contract.id.desc())
        .all()
    )


@router.get("/contracts/{contract_id}", response_model=ContractRead)
def get_contract(
    contract_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    return _visible_contract(db, contract_id, user)


@router.get("/contracts/{contract_id}/pdf")
def get_contract_pdf(
    contract_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    contract = _visible_contract(db, contract_id, user)
    return Response(
        content=contract_pdf_bytes(contract),
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{contract.doc_ref}.pdf"'},
    )


@router.post("/contracts/sign", response_model=ContractRead)
def sign_contract(
    payload: ContractSign,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    with unit_of_work(db):
        contract = contract_service.sign_contract(
            db,
            contract_id=payload.contract_id,
            actor=user,
            method=payload.method,
            data=payload.data,
        )
    return contract


@router.get("/admin/contracts", response_model=List[ContractRead])
def list_contracts(
    status_filter: Optional[models.ContractStatus] = None,
    contract_type: Optional[models.ContractType] = None,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(_admin),  # noqa: B008
):
    q = db.query(models.Contract)
    if status_filter is not None:
        q = q.filter(models.Contract.status == status_filter)
    if contract_type is not None:
        q = q.filter(models.Contract.contract_type == contract_type)
    return q.order_by(models.Contract.id.desc()).all()


@router.post(
    "/admin/contracts/{contract_id}/revise",
    response_model=ContractRead,
    status_code=status.HTTP_201_CREATED,
)
def revise_contract(
    contract_id: int,
    payload: ContractRevise,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
    renderer: DocumentRenderer = Depends(get_document_renderer),  # noqa: B008
):
    with unit_of_work(db):
        contract = contract_service.revise_contract(
            db, contract_id=contract_id, body=payload.body, admin=admin, renderer=renderer
        )
    return contract


@router.get("/certificates/{user_id}", response_model=List[CertificateRead])
def list_certificates(
    user_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(require_self_or_admin),  # noqa: B008
):
    return (
        db.query(models.Certificate)
        .filter(models.Certificate.owner_id == user_id)
        .order_by(models.Certificate.id.desc())
        .all()
    )


@router.post(
    "/admin/certificates", response_model=CertificateRead, status_code=status.HTTP_201_CREATED
)
def create_certificate(
    payload: CertificateCreate,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
    renderer: DocumentRenderer = Depends(get_document_renderer),  # noqa: B008
):
    with unit_of_work(db):
        certificate = generate_certificate(
            db, masterpiece_id=payload.masterpiece_id, admin=admin, renderer=renderer
        )
    return certificate


@router.get("/vault/{user_id}", response_model=VaultRead)
def get_vault(
    user_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(require_self_or_admin),  # noqa: B008
):
    """Everything a collector holds: owned pieces, their certificates and contracts."""

    pieces = (
        db.query(models.Masterpiece)
        .filter(models.Masterpiece.current_owner_id == user_id)
        .order_by(models.Masterpiece.id.asc())
        .all()
    )
    certificates = (
        db.query(models.Certificate)
        .filter(models.Certificate.owner_id == user_id)
        .order_by(models.Certificate.id.desc())
        .all()
    )
    contracts = (
        db.query(models.Contract)
        .filter(models.Contract.user_id == user_id)
        .order_by(models.Contract.id.desc())
        .all()
    )
    return {
        "user_id": user_id,
        "masterpieces": pieces,
        "certificates": certificates,
        "contracts": contracts,
    }
