"""
Dashboard and progress figures.

Computed with aggregate queries instead of database views so the same
code runs on SQLite and PostgreSQL.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from enxoval_api.models import AuditLog, Order, Product
from enxoval_api.services.domain.settings_service import SettingsService
from shared.config.constants import OrderStatus
from shared.utils.admin_schemas import AdminStatsOutput, AuditLogOutput, DailySalesOutput
from shared.utils.schemas import ProgressOutput


class StatsService:
    def __init__(self, db: Session):
        self.db = db

    def raised_cents(self) -> int:
        return self.db.scalar(
            select(func.coalesce(func.sum(Order.amount_cents), 0)).where(Order.status == OrderStatus.PAID)
        ) or 0

    def progress(self) -> ProgressOutput:
        """Goal vs. paid orders. Percentage is capped at 100."""
        goal = SettingsService(self.db).get_goal()
        raised = self.raised_cents()
        paid_orders = self.db.scalar(
            select(func.count()).select_from(Order).where(Order.status == OrderStatus.PAID)
        ) or 0
        percentage = min(round(raised * 100 / goal, 2), 100.0) if goal > 0 else 0.0
        return ProgressOutput(
            goal_cents=goal,
            raised_cents=raised,
            percentage=percentage,
            paid_orders=paid_orders,
        )

    def admin_stats(self) -> AdminStatsOutput:
        status_counts = dict(
            self.db.execute(select(Order.status, func.count()).group_by(Order.status)).all()
        )
        total_products, completed_products = self.db.execute(
            select(
                func.count(),
                func.coalesce(
                    func.sum(case((Product.purchased_qty >= Product.target_qty, 1), else_=0)), 0
                ),
            ).select_from(Product)
        ).one()
        return AdminStatsOutput(
            total_products=total_products or 0,
            completed_products=completed_products or 0,
            paid_orders=status_counts.get(OrderStatus.PAID, 0),
            pending_orders=status_counts.get(OrderStatus.PENDING, 0),
            failed_orders=status_counts.get(OrderStatus.FAILED, 0),
            total_raised_cents=self.raised_cents(),
            total_goal_cents=SettingsService(self.db).get_goal(),
        )

    def daily_sales(self, limit_days: int = 30) -> list[DailySalesOutput]:
        """Paid orders per day, most recent first."""
        sale_date = func.date(func.coalesce(Order.paid_at, Order.created_at))
        rows = self.db.execute(
            select(
                sale_date.label("sale_date"),
                func.count().label("orders_count"),
                func.sum(Order.amount_cents).label("total_cents"),
            )
            .where(Order.status == OrderStatus.PAID)
            .group_by(sale_date)
            .order_by(sale_date.desc())
            .limit(limit_days)
        ).all()
        return [
            DailySalesOutput(
                sale_date=_as_date(row.sale_date),
                orders_count=row.orders_count,
                total_cents=row.total_cents or 0,
            )
            for row in rows
        ]

    def dashboard(self) -> dict[str, Any]:
        return {
            "stats": self.admin_stats().model_dump(),
            "dailySales": [d.model_dump(mode="json") for d in self.daily_sales()],
        }

    def audit_logs(self, page: int = 1, limit: int = 20) -> dict[str, Any]:
        total = self.db.scalar(select(func.count()).select_from(AuditLog)) or 0
        logs = self.db.scalars(
            select(AuditLog)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return {
            "logs": [AuditLogOutput.model_validate(log).model_dump(mode="json") for log in logs],
            "total": total,
            "page": page,
            "limit": limit,
        }


def _as_date(value: Any) -> date:
    # SQLite returns func.date() as a string
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))
