"""HTTP API standing in for the registration, login and profile forms."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import Settings, load_settings, open_storage
from .errors import (
    AccountDisabledError,
    AccountStoreError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidFormatError,
    StorageError,
    UserNotFoundError,
)
from .models import User
from .store import AccountStore, UserStats
from .validation import (
    EMAIL_ERROR,
    FIRST_NAME_ERROR,
    LAST_NAME_ERROR,
    PASSWORD_ERROR,
    PHONE_ERROR,
    is_valid_email,
    is_valid_name,
    is_valid_password,
    is_valid_phone,
)

logger = logging.getLogger("accounts.service")

_UNPROCESSABLE = 422

_ERROR_STATUS = (
    (DuplicateEmailError, status.HTTP_409_CONFLICT),
    (UserNotFoundError, status.HTTP_404_NOT_FOUND),
    (AccountDisabledError, status.HTTP_403_FORBIDDEN),
    (InvalidCredentialsError, status.HTTP_401_UNAUTHORIZED),
    (InvalidFormatError, status.HTTP_400_BAD_REQUEST),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


class RegisterRequest(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class AdminUserUpdateRequest(ProfileUpdateRequest):
    password: Optional[str] = None
    is_active: Optional[bool] = None


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str


class PasswordResetRequest(BaseModel):
    email: str = Field(..., min_length=1)
    new_password: str


class UserResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: str
    created_at: datetime
    last_login: Optional[datetime]
    is_active: bool


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total: int


class StatsResponse(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    users_with_login: int
    recent_registrations: int


class ImportResponse(BaseModel):
    imported: int
    merge: bool


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        phone=user.phone,
        created_at=user.created_at,
        last_login=user.last_login,
        is_active=user.is_active,
    )


def _stats_to_response(stats: UserStats) -> StatsResponse:
    return StatsResponse(
        total_users=stats.total_users,
        active_users=stats.active_users,
        inactive_users=stats.inactive_users,
        users_with_login=stats.users_with_login,
        recent_registrations=stats.recent_registrations,
    )


def _http_error(exc: AccountStoreError) -> HTTPException:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _profile_errors(request: ProfileUpdateRequest) -> List[str]:
    errors: List[str] = []
    if request.first_name is not None and not is_valid_name(request.first_name):
        errors.append(FIRST_NAME_ERROR)
    if request.last_name is not None and not is_valid_name(request.last_name):
        errors.append(LAST_NAME_ERROR)
    if request.email is not None and not is_valid_email(request.email):
        errors.append(EMAIL_ERROR)
    if request.phone is not None and not is_valid_phone(request.phone):
        errors.append(PHONE_ERROR)
    return errors


def _ensure_email_available(store: AccountStore, email: str, user_id: int) -> None:
    existing = store.get_user_by_email(email)
    if existing is not None and existing.id != user_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists",
        )


def _require_session(store: AccountStore) -> User:
    current = store.get_current_user()
    if current is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    return current


def _apply_changes(store: AccountStore, user_id: int, changes: Dict[str, Any]) -> User:
    if "email" in changes:
        _ensure_email_available(store, changes["email"], user_id)
        changes["email"] = changes["email"].lower()
    try:
        return store.update_user(user_id, **changes)
    except AccountStoreError as exc:
        raise _http_error(exc) from exc


def register_routes(app: FastAPI, store: AccountStore) -> None:
    """Expose the account flows on the provided FastAPI application."""

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # Account flows
    # ------------------------------------------------------------------
    @app.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    async def register(request: RegisterRequest) -> UserResponse:
        result = store.validate(request.model_dump())
        if not result.is_valid:
            raise HTTPException(status_code=_UNPROCESSABLE, detail=result.errors)

        try:
            user = store.create_user(
                first_name=request.first_name.strip(),
                last_name=request.last_name.strip(),
                email=request.email.strip(),
                phone=request.phone.strip(),
                password=request.password,
            )
        except AccountStoreError as exc:
            raise _http_error(exc) from exc

        logger.info("Registered user %s", user.id)
        return _user_to_response(user)

    @app.post("/login", response_model=UserResponse)
    async def login(request: LoginRequest) -> UserResponse:
        try:
            user = store.authenticate_user(request.email.strip(), request.password)
            store.set_current_user(user)
        except AccountStoreError as exc:
            logger.warning("Failed login attempt for %s: %s", request.email, exc)
            raise _http_error(exc) from exc

        logger.info("User %s signed in", user.id)
        return _user_to_response(user)

    @app.post("/logout")
    async def logout() -> Dict[str, str]:
        try:
            store.logout()
        except AccountStoreError as exc:
            raise _http_error(exc) from exc
        return {"status": "signed_out"}

    @app.get("/session", response_model=UserResponse)
    async def current_session() -> UserResponse:
        return _user_to_response(_require_session(store))

    @app.put("/profile", response_model=UserResponse)
    async def update_profile(request: ProfileUpdateRequest) -> UserResponse:
        current = _require_session(store)
        errors = _profile_errors(request)
        if errors:
            raise HTTPException(status_code=_UNPROCESSABLE, detail=errors)

        changes = {
            key: value.strip() for key, value in request.model_dump(exclude_none=True).items()
        }
        updated = _apply_changes(store, current.id, changes)
        try:
            store.set_current_user(updated)
        except AccountStoreError as exc:
            raise _http_error(exc) from exc
        return _user_to_response(updated)

    @app.post("/profile/password", response_model=UserResponse)
    async def change_password(request: PasswordChangeRequest) -> UserResponse:
        current = _require_session(store)
        record = store.get_user(current.id)
        if record is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        if record.password != request.current_password:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Current password is incorrect",
            )
        if not is_valid_password(request.new_password):
            raise HTTPException(status_code=_UNPROCESSABLE, detail=[PASSWORD_ERROR])

        updated = _apply_changes(store, record.id, {"password": request.new_password})
        try:
            store.set_current_user(updated)
        except AccountStoreError as exc:
            raise _http_error(exc) from exc
        logger.info("User %s changed their password", record.id)
        return _user_to_response(updated)

    @app.post("/password-reset")
    async def reset_password(request: PasswordResetRequest) -> Dict[str, str]:
        user = store.get_user_by_email(request.email.strip())
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No account found with that email address",
            )
        if not is_valid_password(request.new_password):
            raise HTTPException(status_code=_UNPROCESSABLE, detail=[PASSWORD_ERROR])

        _apply_changes(store, user.id, {"password": request.new_password})
        logger.info("Password reset for user %s", user.id)
        return {"status": "password_reset"}

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------
    @app.get("/users", response_model=UserListResponse)
    async def list_users(q: Optional[str] = Query(default=None)) -> UserListResponse:
        users = store.search_users(q) if q else store.list_users()
        return UserListResponse(users=[_user_to_response(user) for user in users], total=len(users))

    @app.get("/users/{user_id}", response_model=UserResponse)
    async def get_user(user_id: int) -> UserResponse:
        user = store.get_user(user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return _user_to_response(user)

    @app.patch("/users/{user_id}", response_model=UserResponse)
    async def update_user(user_id: int, request: AdminUserUpdateRequest) -> UserResponse:
        if store.get_user(user_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        errors = _profile_errors(request)
        if request.password is not None and not is_valid_password(request.password):
            errors.append(PASSWORD_ERROR)
        if errors:
            raise HTTPException(status_code=_UNPROCESSABLE, detail=errors)

        updated = _apply_changes(store, user_id, request.model_dump(exclude_none=True))
        return _user_to_response(updated)

    @app.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_user(user_id: int) -> Response:
        try:
            store.delete_user(user_id)
        except AccountStoreError as exc:
            raise _http_error(exc) from exc
        logger.info("Deleted user %s", user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/stats", response_model=StatsResponse)
    async def stats() -> StatsResponse:
        return _stats_to_response(store.get_stats())

    @app.get("/export")
    async def export_users() -> JSONResponse:
        return JSONResponse(store.export_users())

    @app.post("/import", response_model=ImportResponse)
    async def import_users(
        payload: Any = Body(...),
        merge: bool = Query(default=False),
    ) -> ImportResponse:
        try:
            imported = store.import_users(payload, merge=merge)
        except AccountStoreError as exc:
            raise _http_error(exc) from exc

        logger.info("Imported %s user(s) (merge=%s)", imported, merge)
        return ImportResponse(imported=imported, merge=merge)


def create_app(
    *,
    store: AccountStore | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the account manager."""

    if store is None:
        resolved = settings or load_settings()
        store = AccountStore(open_storage(resolved), seed_defaults=resolved.seed_defaults)

    app = FastAPI(
        title="Account Manager",
        version="0.1.0",
        description="Registration, login and profile management over a local key-value store.",
    )
    app.state.store = store
    register_routes(app, store)
    return app


__all__ = ["create_app", "register_routes"]
