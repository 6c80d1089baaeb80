"""
Shared FastAPI dependencies: acting user, membership directory, budget service.
"""
from typing import Iterator, Optional
import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from tripledger.core.config import settings
from tripledger.core.security import get_actor_id
from tripledger.db.session import get_db
from tripledger.services.budget_service import BudgetService
from tripledger.services.membership_service import HttpMembershipDirectory, MembershipDirectory

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> str:
    """Resolve the acting user from the bearer token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user_id = get_actor_id(credentials.credentials)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def get_membership_directory() -> Iterator[MembershipDirectory]:
    """Directory client scoped to one request; the HTTP client is closed afterwards."""
    with httpx.Client(timeout=settings.MEMBERSHIP_TIMEOUT_SECONDS) as client:
        yield HttpMembershipDirectory(client=client)


def get_budget_service(
    db: Session = Depends(get_db),
    directory: MembershipDirectory = Depends(get_membership_directory)
) -> BudgetService:
    return BudgetService(db, directory)
