# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – register, login, logout, current-user info, and the
password-recovery flow.

Security notes
--------------
* Login returns the *same* error message whether the email doesn't exist or
  the password is wrong.  This prevents user-enumeration attacks.
* Recovery never distinguishes unknown emails: /recovery/check answers with
  the configuration default and /forgot-password reports success.
* Every reset-token failure (malformed, unknown, mismatched, expired) yields
  the same "Invalid or expired token" response.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from database import get_db
from core.logger import logger, mask_email
from core.security import (
    verify_password,
    hash_password,
    create_access_token,
    get_current_user,
    get_client_ip,
)
from core.webhook import EventWebhook
from models.user import User
from models.audit_log import AuditLog
from recovery.deps import get_dispatcher, get_event_webhook, get_token_service
from recovery.dispatcher import RecoveryDispatcher, WHATSAPP
from recovery.tokens import TokenService
from auth.schemas import (
    ActionResponse,
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    RecoveryCheckRequest,
    RecoveryCheckResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
    ValidateTokenResponse,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])

# Generic message used for both "no such email" and "wrong password"
_LOGIN_FAIL = "Invalid email or password"
_INVALID_TOKEN = "Invalid or expired token"

_CHANNEL_LABEL = {"email": "email", WHATSAPP: "WhatsApp"}


def _issue_session(user: User) -> AuthResponse:
    token = create_access_token({"sub": user.email, "user_id": user.id, "role": user.role})
    return AuthResponse(user=UserResponse.model_validate(user), access_token=token)


# ---------------------------------------------------------------------------
# POST /api/auth/register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AuthResponse)
def register(
    body: RegisterRequest,
    request: Request,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    webhook: EventWebhook = Depends(get_event_webhook),
):
    """Create a client account and sign it in.  The very first account becomes admin."""
    if db.query(User).filter(User.email == body.email).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    if body.external_id and db.query(User).filter(User.external_id == body.external_id).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="External ID already registered")

    role = "admin" if db.query(User).count() == 0 else "client"
    user = User(
        email=body.email,
        password=hash_password(body.password),
        name=body.name,
        celular=body.celular,
        external_id=body.external_id,
        role=role,
        status="active",
        last_active=datetime.now(timezone.utc),
    )
    db.add(user)
    db.flush()
    db.add(AuditLog(actor_id=user.id, target_user_id=user.id, action="user_register",
                    detail=f"role={role}", request_ip=get_client_ip(request)))
    db.commit()
    db.refresh(user)

    background.add_task(webhook.send, "user.registered", {"id": user.id, "email": user.email, "name": user.name})
    return _issue_session(user)


# ---------------------------------------------------------------------------
# POST /api/auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=AuthResponse)
def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Authenticate and return the user together with a signed JWT."""
    user = db.query(User).filter(User.email == body.email).first()

    # Unified failure path – no information leaks about whether the email exists
    if not user or not verify_password(body.password, user.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=_LOGIN_FAIL)

    if user.status != "active":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account disabled")

    user.last_active = datetime.now(timezone.utc)
    db.add(AuditLog(actor_id=user.id, target_user_id=user.id, action="user_login",
                    request_ip=get_client_ip(request)))
    db.commit()
    db.refresh(user)

    return _issue_session(user)


# ---------------------------------------------------------------------------
# POST /api/auth/logout
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=ActionResponse)
def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    JWTs are stateless: the client discards its token.  The server records
    the event so the audit trail shows when a session ended.
    """
    db.add(AuditLog(actor_id=current_user.id, target_user_id=current_user.id, action="user_logout",
                    request_ip=get_client_ip(request)))
    db.commit()
    return ActionResponse(success=True)


# ---------------------------------------------------------------------------
# GET /api/auth/me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's public profile (no secrets)."""
    return MeResponse(user=UserResponse.model_validate(current_user))


# ---------------------------------------------------------------------------
# POST /api/auth/recovery/check  – which channels can reach this account?
# ---------------------------------------------------------------------------


@router.post("/recovery/check", response_model=RecoveryCheckResponse, response_model_exclude_none=True)
def recovery_check(
    body: RecoveryCheckRequest,
    db: Session = Depends(get_db),
    dispatcher: RecoveryDispatcher = Depends(get_dispatcher),
):
    user = db.query(User).filter(User.email == body.email).first()
    if not user:
        return RecoveryCheckResponse(methods=dispatcher.default_methods())

    methods = dispatcher.check_availability(user.email, user.celular, user.external_id)
    return RecoveryCheckResponse(methods=methods)


# ---------------------------------------------------------------------------
# POST /api/auth/forgot-password  – issue a reset token and deliver the link
# ---------------------------------------------------------------------------


@router.post("/forgot-password", response_model=ActionResponse)
def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    dispatcher: RecoveryDispatcher = Depends(get_dispatcher),
):
    label = _CHANNEL_LABEL[body.method]

    # Decided before the user lookup so the answer does not depend on
    # whether the account exists.
    if not dispatcher.is_configured(body.method):
        logger.warning("Recovery via %s requested but the channel is not configured", body.method)
        return ActionResponse(success=False, message=f"Recovery via {label} is not available.")

    sent_message = f"If the email is registered, recovery instructions have been sent via {label}."

    user = db.query(User).filter(User.email == body.email).first()
    if not user:
        logger.info("Recovery requested for unknown email %s", mask_email(body.email))
        return ActionResponse(success=True, message=sent_message)

    token = tokens.generate_token()
    user.set_reset_token(token, tokens.compute_expiry())
    db.add(AuditLog(target_user_id=user.id, action="password_reset_request",
                    detail=f"method={body.method}", request_ip=get_client_ip(request)))
    db.commit()

    result = dispatcher.dispatch(body.method, user, token)
    if not result.ok:
        return ActionResponse(
            success=False,
            message=f"Could not send via {label}. Try another method.",
        )
    return ActionResponse(success=True, message=sent_message)


# ---------------------------------------------------------------------------
# Token resolution shared by reset-password and validate-token
# ---------------------------------------------------------------------------


def _resolve_reset_token(token: str, db: Session, tokens: TokenService):
    """
    Return the User owning *token* if it is currently valid, else None.
    An expired token is cleared from its owner as a side effect.
    """
    if not tokens.is_well_formed(token):
        return None

    user = db.query(User).filter(User.reset_token == token).first()
    if not user or not tokens.matches(token, user.reset_token):
        return None

    if tokens.is_expired(user.reset_token_expiry):
        user.clear_reset_token()
        db.commit()
        return None

    return user


# ---------------------------------------------------------------------------
# POST /api/auth/reset-password
# ---------------------------------------------------------------------------


@router.post("/reset-password", response_model=ActionResponse)
def reset_password(
    body: ResetPasswordRequest,
    request: Request,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    webhook: EventWebhook = Depends(get_event_webhook),
):
    user = _resolve_reset_token(body.token, db, tokens)
    if user is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_INVALID_TOKEN)

    # New hash and cleared token land in the same commit.
    user.password = hash_password(body.password)
    user.clear_reset_token()
    db.add(AuditLog(actor_id=user.id, target_user_id=user.id, action="password_reset",
                    request_ip=get_client_ip(request)))
    db.commit()

    background.add_task(webhook.send, "password.reset", {"id": user.id, "email": user.email})
    return ActionResponse(success=True, message="Password reset successfully")


# ---------------------------------------------------------------------------
# GET /api/auth/validate-token/{token}
# ---------------------------------------------------------------------------


@router.get("/validate-token/{token}", response_model=ValidateTokenResponse)
def validate_token(
    token: str,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    return ValidateTokenResponse(valid=_resolve_reset_token(token, db, tokens) is not None)
