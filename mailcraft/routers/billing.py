from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mailcraft.auth.dependencies import Owner, require_authenticated
from mailcraft.db.deps import get_session
from mailcraft.schemas.account import CheckoutRequest, CheckoutResponse
from mailcraft.services.billing import create_checkout_session

router = APIRouter(prefix="/api/billing", tags=["billing"])


@router.post("/checkout", response_model=CheckoutResponse)
def checkout(
    payload: CheckoutRequest,
    owner: Owner = Depends(require_authenticated),
    session: Session = Depends(get_session),
):
    return CheckoutResponse(url=create_checkout_session(session, owner.account, payload.return_url))
