"""
Shopping cart: immutable state, pure reducer, file-backed store.

The cart lives on the guest's side. ``cart_reducer`` never mutates its
input; ``CartStore`` persists every new state under the ``enxoval-cart``
key and loads it once when constructed.

Quantities for a product are always within
``[1, min(target_qty - purchased_qty, 5)]``; anything else raises CartError.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Optional, Union

from shared.config.constants import Limits
from shared.config.logging import get_logger

logger = get_logger(__name__)

STORAGE_KEY = "enxoval-cart"


class CartError(ValueError):
    """Rejected cart change. ``message`` is shown to the guest."""

    def __init__(self, message: str, product_id: Optional[int] = None):
        self.message = message
        self.product_id = product_id
        super().__init__(message)


def max_allowed_quantity(target_qty: int, purchased_qty: int) -> int:
    """Per-order ceiling for one product: remaining stock, capped at 5."""
    return max(min(target_qty - purchased_qty, Limits.MAX_QUANTITY_PER_ORDER), 0)


@dataclass(frozen=True)
class CartItem:
    product_id: int
    name: str
    price_cents: int
    quantity: int
    target_qty: int
    purchased_qty: int
    image_url: Optional[str] = None

    @property
    def subtotal_cents(self) -> int:
        return self.price_cents * self.quantity

    @property
    def max_quantity(self) -> int:
        return max_allowed_quantity(self.target_qty, self.purchased_qty)


@dataclass(frozen=True)
class CartState:
    items: tuple[CartItem, ...] = ()

    @property
    def total_cents(self) -> int:
        return sum(item.subtotal_cents for item in self.items)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def get(self, product_id: int) -> Optional[CartItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"items": [asdict(item) for item in self.items], "total": self.total_cents}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CartState":
        items = tuple(CartItem(**item) for item in data.get("items", []))
        return cls(items=items)


# =============================================================================
# Actions
# =============================================================================


@dataclass(frozen=True)
class AddItem:
    """Add ``item.quantity`` units, merging with any existing line."""

    item: CartItem


@dataclass(frozen=True)
class RemoveItem:
    product_id: int


@dataclass(frozen=True)
class UpdateQuantity:
    """Set the quantity of a line. Zero or less removes it."""

    product_id: int
    quantity: int


@dataclass(frozen=True)
class ClearCart:
    pass


@dataclass(frozen=True)
class LoadCart:
    state: CartState


CartAction = Union[AddItem, RemoveItem, UpdateQuantity, ClearCart, LoadCart]


def _check_quantity(item: CartItem, quantity: int, already_in_cart: int = 0) -> None:
    ceiling = item.max_quantity
    remaining = item.target_qty - item.purchased_qty
    if remaining <= 0:
        raise CartError("Este produto já foi totalmente presenteado.", item.product_id)
    if quantity < 1:
        raise CartError("A quantidade mínima é 1.", item.product_id)
    if quantity > ceiling:
        if ceiling == remaining:
            available = max(remaining - already_in_cart, 0)
            raise CartError(
                f"Só restam {available} unidades disponíveis deste produto.", item.product_id
            )
        raise CartError(
            f"Limite de {Limits.MAX_QUANTITY_PER_ORDER} unidades por produto em cada pedido.",
            item.product_id,
        )


def cart_reducer(state: CartState, action: CartAction) -> CartState:
    """
    Return the state after ``action``. Raises CartError for invalid quantities.
    """
    if isinstance(action, LoadCart):
        return action.state

    if isinstance(action, ClearCart):
        return CartState()

    if isinstance(action, AddItem):
        existing = state.get(action.item.product_id)
        current = existing.quantity if existing else 0
        if action.item.quantity < 1:
            raise CartError("A quantidade mínima é 1.", action.item.product_id)
        new_quantity = current + action.item.quantity
        _check_quantity(action.item, new_quantity, already_in_cart=current)

        if existing is None:
            return CartState(items=state.items + (action.item,))
        # Refresh price and stock from the incoming snapshot
        merged = replace(action.item, quantity=new_quantity)
        return CartState(
            items=tuple(merged if i.product_id == merged.product_id else i for i in state.items)
        )

    if isinstance(action, RemoveItem):
        return CartState(items=tuple(i for i in state.items if i.product_id != action.product_id))

    if isinstance(action, UpdateQuantity):
        if action.quantity <= 0:
            return cart_reducer(state, RemoveItem(action.product_id))
        existing = state.get(action.product_id)
        if existing is None:
            return state
        _check_quantity(existing, action.quantity)
        return CartState(
            items=tuple(
                replace(i, quantity=action.quantity) if i.product_id == action.product_id else i
                for i in state.items
            )
        )

    raise TypeError(f"Unknown cart action: {action!r}")


class CartStore:
    """
    Holds the current CartState and persists it to a JSON key-value file.

    Persistence failures are logged and do not undo the transition.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.state = self._load()

    def _read_storage(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Error loading cart storage", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _load(self) -> CartState:
        saved = self._read_storage().get(STORAGE_KEY)
        if not saved:
            return CartState()
        try:
            return CartState.from_dict(saved)
        except (AttributeError, TypeError, ValueError) as e:
            logger.error("Discarding unreadable saved cart", error=str(e))
            return CartState()

    def _save(self, state: CartState) -> None:
        storage = self._read_storage()
        storage[STORAGE_KEY] = state.to_dict()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(storage, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error("Error saving cart storage", path=str(self.path), error=str(e))

    def dispatch(self, action: CartAction) -> CartState:
        new_state = cart_reducer(self.state, action)
        self.state = new_state
        if not isinstance(action, LoadCart):
            self._save(new_state)
        return new_state
