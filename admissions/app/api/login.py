"""Login endpoint for admissions staff."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from admissions.app.core.logging import get_logger
from admissions.app.core.security import create_access_token, verify_password
from admissions.app.core.time import utc_now
from admissions.app.db.session import get_db
from admissions.app.dependencies.auth import get_current_user
from admissions.app.models.user import User
from admissions.app.schemas.login import LoginRequest, TokenResponse
from admissions.app.schemas.user import UserRead

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)


@router.post("/login", response_model=TokenResponse)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == credentials.email.lower()).first()
    if not user or not user.hashed_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is inactive")
    if not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    user.last_login = utc_now()
    db.commit()
    logger.info("staff_logged_in", user_id=user.id, tenant_id=user.tenant_id)

    token = create_access_token(user_id=user.id)
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)):
    return current_user
