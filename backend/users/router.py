# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
User administration endpoints – list, create, edit, delete, export.

Every endpoint in this router is guarded by ``require_admin_or_api_key``.
A JWT belonging to a ``client`` receives 403 before any business logic
runs; integrations may call with the shared API key instead, in which case
``admin`` is None and audit rows carry no actor.
"""

import io
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy import or_
from sqlalchemy.orm import Session, aliased
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

from database import get_db
from core.security import get_client_ip, hash_password, require_admin_or_api_key
from core.webhook import EventWebhook
from models.user import User
from models.audit_log import AuditLog
from recovery.deps import get_event_webhook
from auth.schemas import UserResponse
from users.schemas import (
    AuditLogListResponse,
    AuditLogRow,
    CreateUserRequest,
    Role,
    Status,
    UpdateUserRequest,
    UserListResponse,
)

router = APIRouter(prefix="/api/users", tags=["users"])


def _actor_id(admin: Optional[User]) -> Optional[str]:
    return admin.id if admin else None


def _get_or_404(user_id: str, db: Session) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _ensure_unique(db: Session, email: Optional[str], external_id: Optional[str], exclude_id: Optional[str] = None):
    """Raise 409 if *email* or *external_id* already belongs to another user."""
    if email:
        q = db.query(User).filter(User.email == email)
        if exclude_id:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
    if external_id:
        q = db.query(User).filter(User.external_id == external_id)
        if exclude_id:
            q = q.filter(User.id != exclude_id)
        if q.first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="External ID already exists")


def _filtered_users(db: Session, search: Optional[str], role: Optional[str], user_status: Optional[str]):
    q = db.query(User)
    if search:
        pattern = f"%{search.strip().lower()}%"
        q = q.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    if role:
        q = q.filter(User.role == role)
    if user_status:
        q = q.filter(User.status == user_status)
    return q


# ---------------------------------------------------------------------------
# GET /api/users  – search / filter / paginate
# ---------------------------------------------------------------------------


@router.get("", response_model=UserListResponse)
def list_users(
    search: Optional[str] = Query(None, description="Case-insensitive match on name or email"),
    role: Optional[Role] = Query(None),
    user_status: Optional[Status] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    admin: Optional[User] = Depends(require_admin_or_api_key),
    db: Session = Depends(get_db),
):
    """Return one page of users ordered by name (no password data – handled by the schema)."""
    q = _filtered_users(db, search, role, user_status)
    total = q.count()
    users = (
        q.order_by(User.name, User.email)
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        page_size=page_size,
    )


# ---------------------------------------------------------------------------
# POST /api/users  – create a user
# ---------------------------------------------------------------------------


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    body: CreateUserRequest,
    request: Request,
    background: BackgroundTasks,
    admin: Optional[User] = Depends(require_admin_or_api_key),
    db: Session = Depends(get_db),
    webhook: EventWebhook = Depends(get_event_webhook),
):
    _ensure_unique(db, body.email, body.external_id)

    user = User(
        email=body.email,
        password=hash_password(body.password),
        name=body.name,
        celular=body.celular,
        external_id=body.external_id,
        role=body.role,
        status=body.status,
        avatar=body.avatar,
    )
    db.add(user)
    db.flush()  # get user.id before commit
    db.add(AuditLog(actor_id=_actor_id(admin), target_user_id=user.id, action="create_user",
                    detail=f"role={body.role}", request_ip=get_client_ip(request)))
    db.commit()
    db.refresh(user)

    background.add_task(webhook.send, "user.created", {"id": user.id, "email": user.email, "role": user.role})
    return user


# ---------------------------------------------------------------------------
# GET /api/users/export  – download the (filtered) user list as Excel
# ---------------------------------------------------------------------------

_HEADER_FONT  = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
_HEADER_FILL  = PatternFill(start_color="667EEA", end_color="667EEA", fill_type="solid")
_HEADER_ALIGN = Alignment(horizontal="center", vertical="center")
_THIN_BORDER  = Border(
    left=Side(style="thin", color="CCCCCC"),
    right=Side(style="thin", color="CCCCCC"),
    top=Side(style="thin", color="CCCCCC"),
    bottom=Side(style="thin", color="CCCCCC"),
)

EXPORT_HEADERS = ["Name", "Email", "Phone", "External ID", "Role", "Status", "Last Active", "Created"]
_EXPORT_COL_WIDTHS = [28, 32, 18, 20, 10, 10, 20, 20]


def _fmt_ts(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


@router.get("/export")
def export_users(
    search: Optional[str] = Query(None),
    role: Optional[Role] = Query(None),
    user_status: Optional[Status] = Query(None, alias="status"),
    admin: Optional[User] = Depends(require_admin_or_api_key),
    db: Session = Depends(get_db),
):
    """Export the users matching the same filters as the list view."""
    users = _filtered_users(db, search, role, user_status).order_by(User.name, User.email).all()

    wb = Workbook()
    ws = wb.active
    ws.title = "Users"

    ws.append(EXPORT_HEADERS)
    for cell in ws[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _HEADER_ALIGN
        cell.border = _THIN_BORDER

    for user in users:
        ws.append([
            user.name,
            user.email,
            user.celular or "",
            user.external_id or "",
            user.role,
            user.status,
            _fmt_ts(user.last_active),
            _fmt_ts(user.created_at),
        ])
        row_idx = ws.max_row
        for col_idx in range(1, len(EXPORT_HEADERS) + 1):
            ws.cell(row=row_idx, column=col_idx).border = _THIN_BORDER

    for col_idx, width in enumerate(_EXPORT_COL_WIDTHS, start=1):
        ws.column_dimensions[chr(64 + col_idx)].width = width

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    wb.close()

    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="users.xlsx"'},
    )


# ---------------------------------------------------------------------------
# GET /api/users/audit-logs  – newest-first audit trail
# ---------------------------------------------------------------------------


@router.get("/audit-logs", response_model=AuditLogListResponse)
def list_audit_logs(
    action: Optional[str] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    admin: Optional[User] = Depends(require_admin_or_api_key),
    db: Session = Depends(get_db),
):
    Actor = aliased(User)
    Target = aliased(User)

    q = (
        db.query(AuditLog, Actor.email, Target.email)
        .outerjoin(Actor, AuditLog.actor_id == Actor.id)
        .outerjoin(Target, AuditLog.target_user_id == Target.id)
    )
    if action:
        q = q.filter(AuditLog.action == action)

    rows = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
    return AuditLogListResponse(logs=[
        AuditLogRow(
            id=row.id,
            actor_email=actor_email,
            target_email=target_email,
            action=row.action,
            detail=row.detail,
            request_ip=row.request_ip,
            created_at=row.created_at,
        )
        for row, actor_email, target_email in rows
    ])


# ---------------------------------------------------------------------------
# GET /api/users/{id}
# ---------------------------------------------------------------------------


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: str,
    admin: Optional[User] = Depends(require_admin_or_api_key),
    db: Session = Depends(get_db),
):
    return _get_or_404(user_id, db)


# ---------------------------------------------------------------------------
# PUT /api/users/{id}  – partial update
# ---------------------------------------------------------------------------


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    body: UpdateUserRequest,
    request: Request,
    admin: Optional[User] = Depends(require_admin_or_api_key),
    db: Session = Depends(get_db),
):
    """
    Apply the fields present in the body.  Guards:
    * An admin cannot change their own role or deactivate themselves
      (prevents accidental self-lockout).
    * Email and external ID stay unique.
    """
    target = _get_or_404(user_id, db)
    changes = body.model_dump(exclude_unset=True)

    if admin and target.id == admin.id:
        if changes.get("role", target.role) != target.role:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot change your own role")
        if changes.get("status", target.status) != target.status:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot deactivate yourself")

    _ensure_unique(db, changes.get("email"), changes.get("external_id"), exclude_id=target.id)

    password = changes.pop("password", None)
    if password:
        target.password = hash_password(password)
    for field, value in changes.items():
        if field in ("email", "name", "role", "status") and value is None:
            continue  # non-nullable columns
        setattr(target, field, value)

    detail = ",".join(sorted(changes)) + (",password" if password else "")
    db.add(AuditLog(actor_id=_actor_id(admin), target_user_id=target.id, action="update_user",
                    detail=f"fields={detail.strip(',')}", request_ip=get_client_ip(request)))
    db.commit()
    db.refresh(target)
    return target


# ---------------------------------------------------------------------------
# DELETE /api/users/{id}
# ---------------------------------------------------------------------------


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    request: Request,
    background: BackgroundTasks,
    admin: Optional[User] = Depends(require_admin_or_api_key),
    db: Session = Depends(get_db),
    webhook: EventWebhook = Depends(get_event_webhook),
):
    """Guard: an admin cannot delete their own account."""
    if admin and user_id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete yourself")

    target = _get_or_404(user_id, db)
    email = target.email
    db.delete(target)
    db.add(AuditLog(actor_id=_actor_id(admin), action="delete_user",
                    detail=f"email={email}", request_ip=get_client_ip(request)))
    db.commit()

    background.add_task(webhook.send, "user.deleted", {"id": user_id, "email": email})
    return {"success": True}
