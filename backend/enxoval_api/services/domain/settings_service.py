"""
Settings Service: campaign goal and Mercado Pago credentials.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy.orm import Session

from enxoval_api.models import CampaignSettings, MercadoPagoSettings
from enxoval_api.services.audit import log_change
from enxoval_api.services.payments.gateway import MercadoPagoGateway
from shared.config.constants import DEFAULT_GOAL_CENTS, SINGLETON_ID
from shared.config.logging import admin_logger as logger
from shared.config.logging import mask_token
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.utils.admin_schemas import MercadoPagoSettingsOutput
from shared.utils.exceptions import GatewayRejectedError, ValidationError

MP_FIELDS = ("access_token", "public_key", "webhook_secret", "is_enabled")


class SettingsService:
    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Campaign goal
    # =========================================================================

    def get_goal(self) -> int:
        row = self.db.get(CampaignSettings, SINGLETON_ID)
        return row.goal_cents if row is not None else DEFAULT_GOAL_CENTS

    def update_goal(self, goal_cents: int, user_ctx: Optional[dict]) -> int:
        if goal_cents <= 0:
            raise ValidationError("A meta deve ser maior que zero", field="goal_cents")

        row = self.db.get(CampaignSettings, SINGLETON_ID)
        old_goal = row.goal_cents if row is not None else None
        if row is None:
            row = CampaignSettings(id=SINGLETON_ID)
            self.db.add(row)
        row.goal_cents = goal_cents
        safe_commit(self.db)

        log_change(
            self.db,
            user_ctx=user_ctx,
            action="update_goal",
            entity="campaign_settings",
            entity_id=SINGLETON_ID,
            meta={"old": old_goal, "new": goal_cents},
        )
        return goal_cents

    # =========================================================================
    # Mercado Pago
    # =========================================================================

    def get_mercadopago(self) -> MercadoPagoSettingsOutput:
        """Current credentials with the access token masked."""
        row = self.db.get(MercadoPagoSettings, SINGLETON_ID)
        if row is not None and row.access_token:
            return MercadoPagoSettingsOutput(
                access_token=mask_token(row.access_token),
                public_key=row.public_key,
                webhook_secret_set=bool(row.webhook_secret or settings.mp_webhook_secret),
                is_enabled=row.is_enabled,
                source="database",
            )
        return MercadoPagoSettingsOutput(
            access_token=mask_token(settings.mp_access_token),
            public_key=row.public_key if row is not None else None,
            webhook_secret_set=bool((row is not None and row.webhook_secret) or settings.mp_webhook_secret),
            is_enabled=row.is_enabled if row is not None else True,
            source="environment" if settings.mp_access_token else "none",
        )

    def update_mercadopago(self, values: dict[str, Any], user_ctx: Optional[dict]) -> MercadoPagoSettingsOutput:
        """
        Write the given fields. ``None`` leaves a field untouched; an empty
        string clears it.
        """
        row = self.db.get(MercadoPagoSettings, SINGLETON_ID)
        if row is None:
            row = MercadoPagoSettings(id=SINGLETON_ID, is_enabled=True)
            self.db.add(row)

        changed = []
        for field_name in MP_FIELDS:
            value = values.get(field_name)
            if value is None:
                continue
            if isinstance(value, str):
                value = value.strip() or None
            setattr(row, field_name, value)
            changed.append(field_name)
        safe_commit(self.db)

        # Secrets never go into the audit log, only which fields changed
        log_change(
            self.db,
            user_ctx=user_ctx,
            action="update_mercadopago",
            entity="mercadopago_settings",
            entity_id=SINGLETON_ID,
            meta={"fields": changed, "is_enabled": row.is_enabled},
        )
        logger.info("Mercado Pago settings updated", fields=changed)
        return self.get_mercadopago()

    async def test_mercadopago(
        self,
        access_token: Optional[str],
        gateway: Optional[MercadoPagoGateway] = None,
    ) -> dict[str, Any]:
        """
        Check a credential against the account settings endpoint.

        Raises:
            ValidationError: no token, or the gateway refused it
            GatewayUnavailableError: gateway unreachable
        """
        gateway = gateway or MercadoPagoGateway.from_db(self.db)
        token = access_token or gateway.access_token
        if not token:
            raise ValidationError("Access token é obrigatório", field="access_token")

        try:
            data = await gateway.account_settings(token)
        except GatewayRejectedError as e:
            message = e.detail.get("message") if isinstance(e.detail, dict) else None
            raise ValidationError(
                f"Erro da API: {e.upstream_status} - {message or 'credencial recusada'}",
                upstream_status=e.upstream_status,
            ) from e

        return {"success": True, "message": "Conexão bem-sucedida", "data": data}
