from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from stockledger.context import SessionContext
from stockledger.database import get_db
from stockledger.models.user import User
from stockledger.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


class LoginRequest(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: str
    username: str
    display_name: str
    role: str
    tenant_id: str = ""
    active: bool = True

    model_config = {"from_attributes": True}


class CreateUserRequest(BaseModel):
    username: str
    password: str
    display_name: str = ""
    role: str = "operator"
    tenant_id: str = ""


def get_current_user(
    token: str | None = Cookie(default=None, alias="token"),
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Dependency: extract user from JWT cookie or bearer header."""
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:]
    if not token:
        raise HTTPException(401, "Not authenticated")
    payload = auth_service.decode_token(token)
    if not payload:
        raise HTTPException(401, "Invalid or expired token")
    user = auth_service.get_user_by_id(db, payload["sub"])
    if not user or not user.active:
        raise HTTPException(401, "User not found or disabled")
    return user


def get_session_context(user: User = Depends(get_current_user)) -> SessionContext:
    return auth_service.session_context(user)


@router.post("/login")
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, data.username, data.password)
    if not user:
        raise HTTPException(401, "Invalid username or password")
    token = auth_service.create_access_token(user.id, user.username)
    response.set_cookie("token", token, httponly=True, samesite="lax", max_age=3600 * 72)
    return {"token": token, "user": UserOut.model_validate(user)}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("token")
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user


@router.get("/users", response_model=list[UserOut])
def list_users(ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)):
    ctx.require_role("admin")
    return auth_service.list_users(db)


@router.post("/users", response_model=UserOut, status_code=201)
def create_user(
    data: CreateUserRequest, ctx: SessionContext = Depends(get_session_context), db: Session = Depends(get_db)
):
    ctx.require_role("admin")
    return auth_service.create_user(db, data.username, data.password, data.display_name, data.role, data.tenant_id)
