"""
Checkout: guest cart, preference orchestration and order creation.
"""

from .cart import (
    AddItem,
    CartError,
    CartItem,
    CartState,
    CartStore,
    ClearCart,
    LoadCart,
    RemoveItem,
    UpdateQuantity,
    cart_reducer,
    max_allowed_quantity,
)
from .orchestrator import (
    CheckoutError,
    CheckoutLine,
    CheckoutOrchestrator,
    NavigationError,
    NavigationRefused,
    Purchaser,
    build_preference_request,
    navigate,
    normalize_checkout_url,
)
from .order_checkout import OrderCheckoutService
