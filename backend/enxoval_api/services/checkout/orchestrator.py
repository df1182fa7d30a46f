"""
Checkout orchestration: cart lines -> gateway preference -> hosted checkout page.

A redirect URL is prefetched (debounced) as soon as the purchaser has typed
a name and an email, so the final submit can navigate immediately. Any
change to the cart invalidates the prefetched URL.

Navigation tries each strategy in order, moving on only when the previous
one raised.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

import httpx

from enxoval_api.services.payments.gateway import (
    MercadoPagoGateway,
    PreferenceRequest,
    cents_to_amount,
)
from shared.config.logging import checkout_logger as logger
from shared.config.logging import mask_email
from shared.utils.exceptions import GatewayError

MP_APP_SCHEME = "mercadopago://"
MP_WEB_BASE = "https://www.mercadopago.com.br/"

ERROR_MESSAGES = {
    "MP_FAIL": "Erro na configuração do Mercado Pago. Contate o administrador.",
    "MISSING_CONFIG": "Configuração do pagamento não encontrada. Contate o administrador.",
}
DEFAULT_ERROR_MESSAGE = "Erro ao processar pagamento"
NAVIGATION_ERROR_MESSAGE = "Não foi possível abrir o checkout. Tente novamente."


class CheckoutError(Exception):
    """Checkout could not start. ``message`` is shown to the purchaser."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(message)


class PreferenceUnavailable(Exception):
    """The checkout API answered ``{"error": code, "detail": ...}``."""

    def __init__(self, code: str, detail: Any = None, status_code: Optional[int] = None):
        self.code = code
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{code}: {detail}")


class NavigationRefused(ValueError):
    """URL is not HTTPS after scheme normalization."""


class NavigationError(Exception):
    def __init__(self, message: str = NAVIGATION_ERROR_MESSAGE):
        self.message = message
        super().__init__(message)


@dataclass(frozen=True)
class CheckoutLine:
    product_id: int
    name: str
    unit_price_cents: int
    quantity: int

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass(frozen=True)
class Purchaser:
    name: str
    email: str
    payment_method: str = "pix"

    @property
    def ready(self) -> bool:
        return bool(self.name.strip()) and bool(self.email.strip())


RequestPreference = Callable[[Sequence[CheckoutLine], Purchaser], Awaitable[str]]
Navigator = Callable[[str], None]
Strategy = Callable[[str], Any]


def build_preference_request(
    lines: Sequence[CheckoutLine],
    purchaser: Optional[Purchaser] = None,
    external_reference: Optional[str] = None,
) -> PreferenceRequest:
    """
    One line: titled after the product, its quantity at unit price.
    Several lines: a single unit priced at the cart total.
    """
    if len(lines) == 1:
        line = lines[0]
        title = f"Presente para o bebê: {line.name}"
        quantity = line.quantity
        amount = cents_to_amount(line.unit_price_cents)
    else:
        title = f"Presentes para o bebê ({len(lines)} itens)"
        quantity = 1
        amount = cents_to_amount(sum(line.subtotal_cents for line in lines))

    return PreferenceRequest(
        title=title,
        quantity=quantity,
        amount=amount,
        external_reference=external_reference,
        payer_name=purchaser.name if purchaser else None,
        payer_email=purchaser.email if purchaser else None,
        payment_method=purchaser.payment_method if purchaser else None,
    )


def cart_fingerprint(lines: Sequence[CheckoutLine], purchaser: Purchaser) -> str:
    data = {
        "lines": sorted((l.product_id, l.quantity, l.unit_price_cents) for l in lines),
        "purchaser": [purchaser.name.strip(), purchaser.email.strip().lower(), purchaser.payment_method],
    }
    return hashlib.sha256(json.dumps(data, sort_keys=True).encode()).hexdigest()


def normalize_checkout_url(url: str) -> str:
    """
    Rewrite the Mercado Pago app scheme to its web equivalent.

    Raises:
        NavigationRefused: URL is not HTTPS
    """
    if url.startswith(MP_APP_SCHEME):
        url = MP_WEB_BASE + url[len(MP_APP_SCHEME):]
    if not url.startswith("https://"):
        raise NavigationRefused(f"URL de checkout deve usar HTTPS: {url}")
    return url


def navigate(url: str, strategies: Sequence[Strategy]) -> str:
    """
    Open ``url`` with the first strategy that does not raise.

    Returns the normalized URL that was opened.

    Raises:
        NavigationRefused, NavigationError
    """
    final_url = normalize_checkout_url(url)
    for strategy in strategies:
        try:
            strategy(final_url)
            return final_url
        except Exception as e:
            logger.warning(
                "Navigation strategy failed",
                strategy=getattr(strategy, "__name__", repr(strategy)),
                error=str(e),
            )
    logger.error("All navigation strategies failed", url=final_url)
    raise NavigationError()


def user_message(error: Exception) -> str:
    code = getattr(error, "code", None)
    if code in ERROR_MESSAGES:
        return ERROR_MESSAGES[code]
    return DEFAULT_ERROR_MESSAGE


class CheckoutOrchestrator:
    """
    Prefetch/reuse/invalidate state machine around ``request_preference``.

    ``request_preference`` returns a redirect URL for the given lines and
    purchaser. ``navigator`` opens it (usually ``navigate`` bound to a list
    of strategies).
    """

    def __init__(
        self,
        request_preference: RequestPreference,
        navigator: Navigator,
        debounce_seconds: float = 1.0,
    ):
        self.request_preference = request_preference
        self.navigator = navigator
        self.debounce_seconds = debounce_seconds
        self._cached: Optional[tuple[str, str]] = None  # (fingerprint, url)
        self._task: Optional[asyncio.Task] = None

    def cached_url(self, lines: Sequence[CheckoutLine], purchaser: Purchaser) -> Optional[str]:
        if self._cached is None:
            return None
        fingerprint, url = self._cached
        if fingerprint != cart_fingerprint(lines, purchaser):
            return None
        return url

    def invalidate(self) -> None:
        """Drop the prefetched URL and cancel a pending prefetch."""
        self._cached = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def schedule_prefetch(
        self, lines: Sequence[CheckoutLine], purchaser: Purchaser
    ) -> Optional[asyncio.Task]:
        """
        Start a debounced prefetch. A newer call replaces a pending one.

        Does nothing until the purchaser has a name and an email, or when a
        URL for the same cart is already cached.
        """
        if not lines or not purchaser.ready:
            return None
        if self.cached_url(lines, purchaser):
            return None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.create_task(self._prefetch(tuple(lines), purchaser))
        return self._task

    async def _prefetch(self, lines: tuple[CheckoutLine, ...], purchaser: Purchaser) -> None:
        await asyncio.sleep(self.debounce_seconds)
        fingerprint = cart_fingerprint(lines, purchaser)
        try:
            url = await self.request_preference(lines, purchaser)
        except (GatewayError, PreferenceUnavailable, httpx.HTTPError) as e:
            logger.warning("Checkout prefetch failed", error=str(e), code=getattr(e, "code", None))
            return
        if url:
            self._cached = (fingerprint, url)
            logger.debug("Checkout URL prefetched", purchaser=mask_email(purchaser.email))

    async def submit(self, lines: Sequence[CheckoutLine], purchaser: Purchaser) -> str:
        """
        Navigate to the hosted checkout, reusing a prefetched URL when valid.

        Returns the URL that was opened.

        Raises:
            CheckoutError: with the message to show the purchaser
        """
        if not purchaser.ready:
            raise CheckoutError("Nome e email são obrigatórios")
        if not lines:
            raise CheckoutError("Seu carrinho está vazio")

        url = self.cached_url(lines, purchaser)
        if url:
            logger.info("Using prefetched checkout URL", purchaser=mask_email(purchaser.email))
        else:
            if self._task is not None and not self._task.done():
                self._task.cancel()
            try:
                url = await self.request_preference(lines, purchaser)
            except (GatewayError, PreferenceUnavailable) as e:
                logger.error("Checkout failed", code=e.code, error=str(e))
                raise CheckoutError(user_message(e), code=e.code) from e
            except httpx.HTTPError as e:
                logger.error("Checkout request failed", error=str(e))
                raise CheckoutError(DEFAULT_ERROR_MESSAGE) from e

        if not url:
            raise CheckoutError("Link de pagamento não recebido")

        try:
            self.navigator(url)
        except (NavigationRefused, NavigationError) as e:
            raise CheckoutError(NAVIGATION_ERROR_MESSAGE) from e
        return url

    async def aclose(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None


def gateway_fetcher(gateway: MercadoPagoGateway) -> RequestPreference:
    """Preference straight from the gateway; nothing is persisted."""

    async def fetch(lines: Sequence[CheckoutLine], purchaser: Purchaser) -> str:
        result = await gateway.create_preference(build_preference_request(lines, purchaser))
        return result.init_point

    return fetch


def api_fetcher(
    base_url: str,
    *,
    timeout: float = 15.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> RequestPreference:
    """Preference through POST /api/checkout, which also records the order."""

    async def fetch(lines: Sequence[CheckoutLine], purchaser: Purchaser) -> str:
        body = {
            "purchaser_name": purchaser.name,
            "purchaser_email": purchaser.email,
            "payment_method": purchaser.payment_method,
            "items": [{"product_id": l.product_id, "quantity": l.quantity} for l in lines],
        }
        async with httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport) as client:
            response = await client.post("/api/checkout", json=body)
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not response.is_success:
            error = data.get("error") if isinstance(data, dict) else None
            raise PreferenceUnavailable(
                error or "HTTP_ERROR", data.get("detail") if isinstance(data, dict) else None, response.status_code
            )
        return data.get("init_point", "")

    return fetch
