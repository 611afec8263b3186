from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app import models
from app.api.deps import (
    get_current_user,
    get_document_renderer,
    get_token_minter,
    require_roles,
    require_self_or_admin,
)
from app.core.permissions import is_self_or_admin
from app.database import get_db, unit_of_work
from app.schemas import (
    ContractRead,
    PaymentRead,
    PurchaseRequest,
    PurchaseReview,
    PurchaseReviewResult,
    WorkflowAdvance,
    WorkflowRead,
)
from app.services import purchase_workflow as workflow_service
from app.services.documents import DocumentRenderer
from app.services.minting import TokenMinter

router = APIRouter(tags=["purchase-workflow"])

_admin = require_roles(models.RoleName.admin)


@router.post("/purchase/request", response_model=ContractRead, status_code=status.HTTP_201_CREATED)
def request_purchase(
    payload: PurchaseRequest,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
    renderer: DocumentRenderer = Depends(get_document_renderer),  # noqa: B008
):
    """Reserve an available piece and issue its deposit agreement draft."""

    with unit_of_work(db):
        contract = workflow_service.request_purchase(
            db, buyer=user, masterpiece_id=payload.masterpiece_id, renderer=renderer
        )
    return contract


@router.post("/admin/purchase/approve", response_model=PurchaseReviewResult)
def review_purchase(
    payload: PurchaseReview,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        workflow = workflow_service.review_purchase(
            db, masterpiece_id=payload.masterpiece_id, approve=payload.approve, admin=admin
        )
    return PurchaseReviewResult(
        approved=payload.approve,
        workflow=WorkflowRead.model_validate(workflow) if workflow is not None else None,
    )


@router.post("/admin/workflow/advance", response_model=WorkflowRead)
def advance_workflow(
    payload: WorkflowAdvance,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
    minter: TokenMinter = Depends(get_token_minter),  # noqa: B008
    renderer: DocumentRenderer = Depends(get_document_renderer),  # noqa: B008
):
    with unit_of_work(db):
        workflow = workflow_service.advance_workflow(
            db,
            masterpiece_id=payload.masterpiece_id,
            step=payload.step,
            actor=admin,
            minter=minter,
            renderer=renderer,
        )
    return workflow


@router.get("/admin/workflows", response_model=List[WorkflowRead])
def list_workflows(
    status_filter: Optional[models.WorkflowStatus] = None,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(_admin),  # noqa: B008
):
    q = db.query(models.PurchaseWorkflow)
    if status_filter is not None:
        q = q.filter(models.PurchaseWorkflow.status == status_filter)
    return q.order_by(models.PurchaseWorkflow.id.desc()).all()


@router.get("/workflow/{masterpiece_id}", response_model=Optional[WorkflowRead])
def get_workflow(
    masterpiece_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
):
    workflow = workflow_service.get_workflow(db, masterpiece_id)
    if workflow is None:
        return None
    if not is_self_or_admin(user, workflow.user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed")
    return workflow


@router.post("/workflow/{masterpiece_id}/confirm-receipt", response_model=WorkflowRead)
def confirm_receipt(
    masterpiece_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    user: models.User = Depends(get_current_user),  # noqa: B008
    minter: TokenMinter = Depends(get_token_minter),  # noqa: B008
    renderer: DocumentRenderer = Depends(get_document_renderer),  # noqa: B008
):
    with unit_of_work(db):
        workflow = workflow_service.confirm_receipt(
            db, masterpiece_id=masterpiece_id, buyer=user, minter=minter, renderer=renderer
        )
    return workflow


@router.get("/payments/{user_id}", response_model=List[PaymentRead])
def list_payments(
    user_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    _: models.User = Depends(require_self_or_admin),  # noqa: B008
):
    return (
        db.query(models.Payment)
        .filter(models.Payment.user_id == user_id)
        .order_by(models.Payment.id.desc())
        .all()
    )


@router.post("/admin/payments/{payment_id}/confirm", response_model=PaymentRead)
def confirm_payment(
    payment_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
    minter: TokenMinter = Depends(get_token_minter),  # noqa: B008
):
    with unit_of_work(db):
        payment = workflow_service.confirm_payment(
            db, payment_id=payment_id, admin=admin, minter=minter
        )
    return payment


@router.post("/admin/payments/{payment_id}/reject", response_model=PaymentRead)
def reject_payment(
    payment_id: int,
    db: Session = Depends(get_db),  # noqa: B008
    admin: models.User = Depends(_admin),  # noqa: B008
):
    with unit_of_work(db):
        payment = workflow_service.reject_payment(db, payment_id=payment_id, admin=admin)
    return payment
