from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from freight_approvals.database import get_db
from freight_approvals.models import Fee, User
from freight_approvals.routers.approvals import approval_http_error
from freight_approvals.schemas import FeeRead, FeeSupplementCreate, FeeSupplementResult
from freight_approvals.services import approval_store
from freight_approvals.services.approval_errors import ApprovalError

router = APIRouter(prefix="/fees", tags=["Fees"])


@router.get("", response_model=list[FeeRead])
def list_fees(db: Session = Depends(get_db)) -> list[FeeRead]:
    return db.query(Fee).order_by(Fee.created_at.desc()).all()


@router.get("/{fee_id}", response_model=FeeRead)
def get_fee(fee_id: UUID, db: Session = Depends(get_db)) -> FeeRead:
    fee = db.get(Fee, fee_id)
    if not fee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fee not found")
    return fee


@router.post("/supplement", response_model=FeeSupplementResult, status_code=status.HTTP_201_CREATED)
def supplement_fee(
    payload: FeeSupplementCreate,
    response: Response,
    db: Session = Depends(get_db),
) -> FeeSupplementResult:
    applicant = db.get(User, payload.applicant_id)
    if not applicant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    # Recorded as pending until the gate says otherwise.
    fee = Fee(**payload.model_dump(exclude={"applicant_id"}), approval_status="pending")
    db.add(fee)
    db.commit()
    db.refresh(fee)

    try:
        gate = approval_store.check_and_create(
            db,
            "FEE_SUPPLEMENT",
            {
                "title": f"Supplementary fee {fee.fee_name}",
                "content": f"{fee.amount} {fee.currency} on bill {fee.bill_number or '-'}",
                "business_id": str(fee.id),
                "business_table": "fees",
                "amount": str(fee.amount),
                "currency": fee.currency,
                "request_data": {"fee_id": str(fee.id)},
                "applicant_id": applicant.id,
            },
        )
    except ApprovalError as exc:
        db.delete(fee)
        db.commit()
        raise approval_http_error(exc) from exc

    if gate.needs_approval:
        response.status_code = status.HTTP_202_ACCEPTED
        return FeeSupplementResult(
            executed=False,
            needs_approval=True,
            approval_id=gate.approval.id,
            fee=fee,
        )

    fee.approval_status = "approved"
    db.commit()
    db.refresh(fee)
    return FeeSupplementResult(
        executed=True,
        needs_approval=False,
        error=gate.error,
        result={"fee_id": str(fee.id)},
        fee=fee,
    )
