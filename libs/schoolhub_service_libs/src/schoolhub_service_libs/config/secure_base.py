"""Base settings class shared by SchoolHub services."""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings
from schoolhub_core.config_enums import Environment

from schoolhub_service_libs.config.database_utils import build_database_url


class SecureServiceSettings(BaseSettings):
    """
    Common settings: environment detection, internal API key and database URL
    construction. Service settings subclass this and add their own fields.
    """

    ENVIRONMENT: Environment = Field(default=Environment.DEVELOPMENT)
    INTERNAL_API_KEY: SecretStr = Field(default=SecretStr(""))

    def is_production(self) -> bool:
        return self.ENVIRONMENT == Environment.PRODUCTION

    def is_development(self) -> bool:
        return self.ENVIRONMENT == Environment.DEVELOPMENT

    def is_testing(self) -> bool:
        return self.ENVIRONMENT == Environment.TESTING

    def build_database_url(
        self,
        database_name: str,
        service_env_var_prefix: str,
        dev_port: int,
        dev_host: str = "localhost",
    ) -> str:
        """Resolve the database URL for the current environment."""
        return build_database_url(
            database_name=database_name,
            service_env_var_prefix=service_env_var_prefix,
            is_production=self.is_production(),
            dev_port=dev_port,
            dev_host=dev_host,
        )
