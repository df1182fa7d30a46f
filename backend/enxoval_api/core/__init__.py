"""
Application wiring: CORS, middlewares, exception handlers and lifespan.
"""
