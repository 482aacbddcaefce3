from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from inventory_ledger.config import settings
from inventory_ledger.database import get_db
from inventory_ledger.models.user import User
from inventory_ledger.schemas.inventory import CamelModel
from inventory_ledger.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])

# Browser clients send the cookie set at login; scripts send a Bearer header
bearer_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


class LoginRequest(CamelModel):
    username: str
    password: str


class UserOut(CamelModel):
    id: str
    username: str
    display_name: str
    role: str
    active: bool = True


class LoginOut(CamelModel):
    token: str
    token_type: str = "bearer"
    user: UserOut


def get_current_user(
    cookie_token: str | None = Cookie(default=None, alias="token"),
    bearer_token: str | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the logged-in user from the Bearer header or the JWT cookie."""
    token = bearer_token or cookie_token
    if not token:
        raise HTTPException(401, "Not authenticated", headers={"WWW-Authenticate": "Bearer"})
    payload = auth_service.decode_token(token)
    if not payload:
        raise HTTPException(401, "Invalid or expired token", headers={"WWW-Authenticate": "Bearer"})
    user = auth_service.get_user_by_id(db, payload["sub"])
    if not user or not user.active:
        raise HTTPException(401, "User not found or disabled")
    return user


def get_operator(user: User = Depends(get_current_user)) -> auth_service.Operator:
    """The identity stamped on audit entries written by this request."""
    return auth_service.operator_for(user)


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(403, "Admin only")
    return user


@router.post("/login", response_model=LoginOut)
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, data.username, data.password)
    if not user:
        raise HTTPException(401, "Invalid username or password")
    token = auth_service.create_access_token(user.id, user.username)
    response.set_cookie(
        "token", token, httponly=True, samesite="lax", max_age=3600 * settings.ACCESS_TOKEN_EXPIRE_HOURS
    )
    return LoginOut(token=token, user=UserOut.model_validate(user))


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("token")
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user
