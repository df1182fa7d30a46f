"""
Dashboard endpoint: sales figures and the audit trail.
"""

from typing import Any

from fastapi import APIRouter

from enxoval_api.routers.admin._base import (
    Depends, Session, TypeAdapter,
    action_body, get_db, parse_action, require_admin,
)
from enxoval_api.services.domain import StatsService
from shared.utils.admin_schemas import DashboardAction, DashboardGetAuditLogs, DashboardGetStats

router = APIRouter(tags=["admin-dashboard"])

_actions = TypeAdapter(DashboardAction)


@router.post("/dashboard")
def admin_dashboard(
    user: dict = Depends(require_admin),
    payload: dict = Depends(action_body),
    db: Session = Depends(get_db),
) -> Any:
    body = parse_action(_actions, payload)
    service = StatsService(db)

    if isinstance(body, DashboardGetStats):
        return service.dashboard()

    if isinstance(body, DashboardGetAuditLogs):
        return service.audit_logs(page=body.page, limit=body.limit)
