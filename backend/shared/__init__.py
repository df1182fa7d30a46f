"""
Shared module for code used by the API, the CLI and the tests.

STRUCTURE:
- shared.security: Authentication, passwords, webhook signatures
  - auth.py: JWT signing/verification, current_user_context
  - password.py: Bcrypt hashing
  - rate_limit.py: Login rate limiting (slowapi)
  - webhook_signature.py: Mercado Pago x-signature verification

- shared.infrastructure: Database and request correlation
  - db.py: SQLAlchemy sessions, safe_commit()
  - correlation.py: Request IDs and security headers

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: Roles, OrderStatus, PaymentMethod, Limits

- shared.utils: Utilities
  - exceptions.py: HTTP and gateway exceptions with auto-logging
  - validators.py: Input validation, BRL formatting
  - schemas.py / admin_schemas.py: Pydantic request and response models

IMPORT EXAMPLES:
    from shared.security.auth import verify_jwt, current_user_context
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import OrderStatus, Roles
    from shared.utils.exceptions import NotFoundError, ForbiddenError
    from shared.utils.validators import format_brl
"""
