from dataclasses import dataclass
import logging
import re
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from mailcraft.auth.tokens import verify_access_token
from mailcraft.db.deps import get_session
from mailcraft.db.models import Account
from mailcraft.db.repositories.accounts import AccountsRepository


bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth.deps")

ANONYMOUS_PREFIX = "anon:"
_ANONYMOUS_ID_RE = re.compile(r"^[A-Za-z0-9_\-]{8,100}$")


@dataclass
class Owner:
    id: str
    is_anonymous: bool
    account: Account
    email: Optional[str] = None


def anonymous_owner_id(anonymous_id: str) -> str:
    if not _ANONYMOUS_ID_RE.match(anonymous_id or ""):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid anonymous id")
    return f"{ANONYMOUS_PREFIX}{anonymous_id}"


def get_current_owner(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    anonymous_id: Optional[str] = Header(default=None, alias="X-Anonymous-Id"),
    session: Session = Depends(get_session),
) -> Owner:
    accounts_repo = AccountsRepository(session)

    if credentials is not None and credentials.credentials:
        claims = verify_access_token(credentials.credentials)
        user_id = claims.get("sub")
        if not user_id:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")
        email = claims.get("email")
        account = accounts_repo.get_or_create(
            user_id,
            is_anonymous=False,
            email=email,
            display_name=claims.get("name"),
        )
        logger.debug("Owner resolved from token", extra={"sub": user_id})
        return Owner(id=user_id, is_anonymous=False, account=account, email=email)

    if anonymous_id:
        owner_id = anonymous_owner_id(anonymous_id)
        account = accounts_repo.get_or_create(owner_id, is_anonymous=True)
        return Owner(id=owner_id, is_anonymous=True, account=account)

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token or anonymous id")


def require_authenticated(owner: Owner = Depends(get_current_owner)) -> Owner:
    if owner.is_anonymous:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Sign in to use this feature",
        )
    return owner
