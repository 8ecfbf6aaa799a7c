"""
Database URL construction shared by SchoolHub services.

Resolution order:
1. ``{SERVICE_PREFIX}_DATABASE_URL`` (service-specific override)
2. ``SERVICE_DATABASE_URL`` (generic override, used by test containers)
3. Production: ``SCHOOLHUB_PROD_DB_HOST``/``_PORT``/``_PASSWORD`` with ``SCHOOLHUB_DB_USER``
4. Development: ``SCHOOLHUB_DB_USER``/``SCHOOLHUB_DB_PASSWORD`` against ``dev_host:dev_port``
"""

from __future__ import annotations

import os
from urllib.parse import quote_plus

_DRIVER = "postgresql+asyncpg"


def build_database_url(
    database_name: str,
    service_env_var_prefix: str,
    is_production: bool,
    dev_port: int,
    dev_host: str = "localhost",
    url_encode_password: bool = True,
) -> str:
    """
    Build an asyncpg connection URL for a service database.

    Raises:
        ValueError: If the required credentials are not set
    """
    override = os.getenv(f"{service_env_var_prefix}_DATABASE_URL") or os.getenv(
        "SERVICE_DATABASE_URL"
    )
    if override:
        return override

    user = os.getenv("SCHOOLHUB_DB_USER")

    if is_production:
        host = os.getenv("SCHOOLHUB_PROD_DB_HOST")
        port = os.getenv("SCHOOLHUB_PROD_DB_PORT", "5432")
        password = os.getenv("SCHOOLHUB_PROD_DB_PASSWORD")
        if not user or not password or not host:
            raise ValueError(
                "Production database requires SCHOOLHUB_DB_USER, SCHOOLHUB_PROD_DB_HOST "
                "and SCHOOLHUB_PROD_DB_PASSWORD"
            )
    else:
        host = dev_host
        port = str(dev_port)
        password = os.getenv("SCHOOLHUB_DB_PASSWORD")
        if not user or not password:
            raise ValueError(
                "Missing required database credentials: SCHOOLHUB_DB_USER and "
                "SCHOOLHUB_DB_PASSWORD must be set"
            )

    if url_encode_password:
        password = quote_plus(password)

    return f"{_DRIVER}://{user}:{password}@{host}:{port}/{database_name}"
