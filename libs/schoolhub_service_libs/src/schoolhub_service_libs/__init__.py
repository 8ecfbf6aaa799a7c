"""
SchoolHub Service Libraries.

Shared infrastructure for SchoolHub services: structured logging, error
handling, settings, Redis and Kafka clients.
"""

from .kafka_client import KafkaBus
from .logging_utils import configure_service_logging, create_service_logger
from .redis_client import RedisClient

__all__ = ["KafkaBus", "RedisClient", "configure_service_logging", "create_service_logger"]
