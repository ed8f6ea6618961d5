from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.models import User
from eventhub.schemas import PasswordChange, ProfileUpdate, TokenRequest, TokenResponse, UserCreate, UserResponse
from eventhub.services import auth

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=201)
def register(user: UserCreate, db: Session = Depends(get_db)):
    """Create an organizer or attendee account."""
    return auth.register_user(
        db,
        email=user.email,
        name=user.name,
        password=user.password,
        role=user.role,
        company_name=user.company_name,
        contact_details=user.contact_details,
    )


@router.post("/token", response_model=TokenResponse)
def login(credentials: TokenRequest, db: Session = Depends(get_db)):
    """Exchange email and password for a bearer token."""
    user = auth.authenticate(db, credentials.email, credentials.password)
    return TokenResponse(access_token=auth.create_access_token(user))


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(auth.get_current_user)):
    return user


@router.patch("/profile", response_model=UserResponse)
def update_profile(
    body: ProfileUpdate,
    user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    """Update name, role, company name or contact details."""
    return auth.update_profile(db, user, body.model_dump(exclude_unset=True))


@router.post("/change-password", status_code=204)
def change_password(
    body: PasswordChange,
    user: User = Depends(auth.get_current_user),
    db: Session = Depends(get_db),
):
    auth.change_password(db, user, body.current_password, body.new_password)
    return None
