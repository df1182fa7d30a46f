"""
Services module for business logic.

- domain/: admin and catalog services (business rules + audit)
- checkout/: cart, checkout orchestration and order checkout
- payments/: Mercado Pago adapter, webhook processing, reconciliation
- email.py: thank-you email rendering and delivery
- audit.py: audit log rows for admin mutations

Usage:
    from enxoval_api.services.domain import CategoryService
    service = CategoryService(db)
    categories = service.list_ordered()
"""
