"""Application configuration.

AppConfig is a frozen dataclass, immutable after creation. Variants are
made with ``dataclasses.replace``.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, port=3000)
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    backlog: int = 2048

    # Logging
    log_level: str = "info"
    access_log: bool = True

    # Responses
    json_indent: int | None = None

    # Limits (enforced by the body-parsing middleware)
    max_body_size: int = 1024 * 1024  # 1 MiB
