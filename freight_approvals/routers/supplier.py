from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from freight_approvals.database import get_db
from freight_approvals.models import Supplier, User
from freight_approvals.routers.approvals import approval_http_error
from freight_approvals.schemas import GatedActionResult, SupplierCreate, SupplierRead, SupplierUpdate
from freight_approvals.services import approval_store
from freight_approvals.services.approval_errors import ApprovalError

router = APIRouter(prefix="/suppliers", tags=["Suppliers"])


def _get_supplier_or_404(supplier_id: UUID, db: Session) -> Supplier:
    supplier = db.get(Supplier, supplier_id)
    if not supplier:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Supplier not found")
    return supplier


@router.post("", response_model=SupplierRead, status_code=status.HTTP_201_CREATED)
def create_supplier(payload: SupplierCreate, db: Session = Depends(get_db)) -> SupplierRead:
    supplier = Supplier(**payload.model_dump())
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


@router.get("", response_model=list[SupplierRead])
def list_suppliers(db: Session = Depends(get_db)) -> list[SupplierRead]:
    return db.query(Supplier).order_by(Supplier.name).all()


@router.get("/{supplier_id}", response_model=SupplierRead)
def get_supplier(supplier_id: UUID, db: Session = Depends(get_db)) -> SupplierRead:
    return _get_supplier_or_404(supplier_id, db)


@router.put("/{supplier_id}", response_model=SupplierRead)
def update_supplier(
    supplier_id: UUID,
    payload: SupplierUpdate,
    db: Session = Depends(get_db),
) -> SupplierRead:
    supplier = _get_supplier_or_404(supplier_id, db)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(supplier, field, value)

    db.commit()
    db.refresh(supplier)
    return supplier


@router.delete("/{supplier_id}", response_model=GatedActionResult)
def delete_supplier(
    supplier_id: UUID,
    requested_by_id: UUID,
    response: Response,
    db: Session = Depends(get_db),
) -> GatedActionResult:
    supplier = _get_supplier_or_404(supplier_id, db)
    requester = db.get(User, requested_by_id)
    if not requester:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    try:
        gate = approval_store.check_and_create(
            db,
            "SUPPLIER_DELETE",
            {
                "title": f"Delete supplier {supplier.name}",
                "content": f"{requester.name} requests deletion of supplier {supplier.name}.",
                "business_id": str(supplier.id),
                "business_table": "suppliers",
                "request_data": {"supplier_id": str(supplier.id)},
                "applicant_id": requester.id,
            },
        )
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc

    if gate.needs_approval:
        response.status_code = status.HTTP_202_ACCEPTED
        return GatedActionResult(executed=False, needs_approval=True, approval_id=gate.approval.id)

    db.delete(supplier)
    db.commit()
    return GatedActionResult(
        executed=True,
        needs_approval=False,
        error=gate.error,
        result={"supplier_id": str(supplier_id)},
    )
