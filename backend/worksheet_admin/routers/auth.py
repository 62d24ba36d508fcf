from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from ..accounts import ADMIN_ROLES, AccountService
from ..deps import get_account_service, get_settings
from ..settings import Settings
from ..taxonomy import UNKNOWN_GRADE, normalize_grade

router = APIRouter(prefix="/auth", tags=["auth"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class Token(BaseModel):
	access_token: str
	token_type: str = "bearer"


class User(BaseModel):
	username: str
	role: str = "admin"
	# "admin" sees every grade; a grade code limits a viewer to that grade
	grade: str = "admin"


def _resolve_expiry(expires_delta: Optional[timedelta], cfg: Settings) -> datetime:
	delta = expires_delta
	if delta is None:
		minutes = cfg.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=30)
	return datetime.now(timezone.utc) + delta


def create_access_token(data: dict, cfg: Settings, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	to_encode.update({"exp": _resolve_expiry(expires_delta, cfg)})
	return jwt.encode(to_encode, cfg.jwt_secret_key, algorithm=cfg.jwt_algorithm)


@router.post("/token", response_model=Token)
async def login(
	form_data: OAuth2PasswordRequestForm = Depends(),
	accounts: AccountService = Depends(get_account_service),
	cfg: Settings = Depends(get_settings),
):
	accounts.ensure_seed_admin(cfg.seed_username, cfg.seed_password_plain)
	row = accounts.authenticate(form_data.username, form_data.password)
	if row is None or row.role not in ADMIN_ROLES:
		raise HTTPException(status_code=401, detail="Invalid login ID or password!")
	access_token = create_access_token({"sub": row.email, "role": row.role, "grade": row.grade}, cfg)
	return Token(access_token=access_token)


def get_current_user(
	token: str = Depends(oauth2_scheme),
	accounts: AccountService = Depends(get_account_service),
	cfg: Settings = Depends(get_settings),
) -> User:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	try:
		payload = jwt.decode(token, cfg.jwt_secret_key, algorithms=[cfg.jwt_algorithm])
		username: str | None = payload.get("sub")
		if username is None:
			raise credentials_exception
	except JWTError:
		raise credentials_exception
	# Accounts removed or demoted since the token was issued lose access
	row = accounts.find(username)
	if row is None or row.role not in ADMIN_ROLES:
		raise credentials_exception
	return User(username=row.email, role=row.role, grade=row.grade)


def require_admin(user: User = Depends(get_current_user)) -> User:
	if user.role != "admin":
		raise HTTPException(status_code=403, detail="admin access required")
	return user


@router.get("/me", response_model=User)
async def me(user: User = Depends(get_current_user)):
	return user


class CreateAccountRequest(BaseModel):
	username: str
	password: str
	role: str = "viewer"
	grade: str = "admin"


@router.post("/accounts", status_code=201, response_model=User)
async def create_account(
	req: CreateAccountRequest,
	accounts: AccountService = Depends(get_account_service),
	admin: User = Depends(require_admin),
):
	if req.role not in ADMIN_ROLES:
		raise HTTPException(status_code=400, detail=f"role must be one of {', '.join(ADMIN_ROLES)}")
	grade = "admin" if req.role == "admin" else normalize_grade(req.grade)
	if grade == UNKNOWN_GRADE:
		raise HTTPException(status_code=400, detail="viewer accounts need a grade such as G3")
	row = accounts.create_account(req.username, req.password, role=req.role, grade=grade)
	return User(username=row.email, role=row.role, grade=row.grade)
