"""
HTTP routers.

Public: catalog, checkout, payments (Mercado Pago), auth, health.
Admin: see ``enxoval_api.routers.admin``.
"""
