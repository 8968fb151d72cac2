"""
Configuration module for the Midtrans gateway client.

Loads settings from environment variables with sensible defaults.
Nothing here is global: callers build a config once at startup and
hand it to the services that need it.
"""

import base64
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from models.errors import ConfigurationError

# Load environment variables from .env file
load_dotenv()

SANDBOX = 'sandbox'
PRODUCTION = 'production'
ENVIRONMENTS = (SANDBOX, PRODUCTION)

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class BaseUrls:
    """Root endpoint per gateway capability."""
    api: str
    snap: str
    payment_link: str
    disbursement: str
    payout: str
    invoice: str

    @classmethod
    def for_environment(cls, environment: str) -> 'BaseUrls':
        """Resolve the whole table from the environment mode."""
        if environment == PRODUCTION:
            api_host = 'https://api.midtrans.com'
            app_host = 'https://app.midtrans.com'
        else:
            api_host = 'https://api.sandbox.midtrans.com'
            app_host = 'https://app.sandbox.midtrans.com'

        return cls(
            api=api_host,
            snap=app_host,
            payment_link=api_host,
            disbursement=api_host,
            payout=app_host,  # Iris
            invoice=api_host
        )

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(frozen=True)
class MidtransConfig:
    """
    Credentials and endpoints for talking to Midtrans.

    Immutable once built. Missing keys or an unknown environment make
    construction fail, so a half-configured client never exists.

    Usage:
        midtrans = MidtransConfig.from_env()

        print(midtrans.base_urls.api)
        print(midtrans.is_production())
    """

    server_key: str
    client_key: str
    environment: str = SANDBOX
    timeout: float = DEFAULT_TIMEOUT
    callback_url: Optional[str] = None
    finish_url: str = 'https://example.com/finish'
    error_url: str = 'https://example.com/error'
    pending_url: str = 'https://example.com/pending'
    base_urls: BaseUrls = field(init=False)

    def __post_init__(self):
        if not self.server_key:
            raise ConfigurationError('MIDTRANS_SERVER_KEY is required in environment variables')

        if not self.client_key:
            raise ConfigurationError('MIDTRANS_CLIENT_KEY is required in environment variables')

        if self.environment not in ENVIRONMENTS:
            raise ConfigurationError(
                f"MIDTRANS_ENVIRONMENT must be one of {', '.join(ENVIRONMENTS)}, "
                f"got {self.environment!r}"
            )

        if self.timeout <= 0:
            raise ConfigurationError('MIDTRANS_TIMEOUT must be a positive number of seconds')

        object.__setattr__(self, 'base_urls', BaseUrls.for_environment(self.environment))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'MidtransConfig':
        """
        Build the config from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Raises:
            ConfigurationError: If a required variable is missing or invalid
        """
        env = os.environ if environ is None else environ

        timeout_str = env.get('MIDTRANS_TIMEOUT') or str(DEFAULT_TIMEOUT)
        try:
            timeout = float(timeout_str)
        except ValueError:
            raise ConfigurationError(f"MIDTRANS_TIMEOUT is not a number: {timeout_str!r}")

        return cls(
            server_key=env.get('MIDTRANS_SERVER_KEY', ''),
            client_key=env.get('MIDTRANS_CLIENT_KEY', ''),
            environment=env.get('MIDTRANS_ENVIRONMENT') or SANDBOX,
            timeout=timeout,
            callback_url=env.get('MIDTRANS_CALLBACK_URL') or None,
            finish_url=env.get('MIDTRANS_FINISH_URL') or 'https://example.com/finish',
            error_url=env.get('MIDTRANS_ERROR_URL') or 'https://example.com/error',
            pending_url=env.get('MIDTRANS_PENDING_URL') or 'https://example.com/pending'
        )

    def is_production(self) -> bool:
        return self.environment == PRODUCTION

    def get_server_auth_header(self) -> str:
        """Base64 of 'server_key:' for Basic auth."""
        return base64.b64encode(f"{self.server_key}:".encode('utf-8')).decode('ascii')

    def get_client_auth_header(self) -> str:
        """Base64 of 'client_key:' for client-authenticated calls."""
        return base64.b64encode(f"{self.client_key}:".encode('utf-8')).decode('ascii')

    def get_environment_info(self) -> Dict[str, Any]:
        """Resolved settings for diagnostics. Never includes keys."""
        return {
            'environment': self.environment,
            'is_production': self.is_production(),
            'timeout': self.timeout,
            'base_urls': self.base_urls.to_dict()
        }

    def __repr__(self) -> str:
        return (
            f"MidtransConfig(environment={self.environment}, "
            f"timeout={self.timeout})"
        )


@dataclass
class APIConfig:
    """Notification receiver server configuration."""
    host: str
    port: int


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str
    file: Optional[str]


@dataclass
class ServiceConfig:
    """Service-level configuration."""
    name: str
    shutdown_timeout: int


@dataclass
class AppConfig:
    """
    Everything the notification receiver needs at startup.

    Usage:
        from config import load_config

        app_config = load_config()
        print(app_config.midtrans.environment)
        print(app_config.api.port)
    """
    midtrans: MidtransConfig
    api: APIConfig
    logging: LoggingConfig
    service: ServiceConfig


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Load all configuration from environment variables.

    Raises:
        ConfigurationError: If Midtrans credentials are missing or invalid
    """
    env = os.environ if environ is None else environ

    try:
        port = int(env.get('API_PORT', '8000'))
        shutdown_timeout = int(env.get('SHUTDOWN_TIMEOUT', '30'))
    except ValueError as e:
        raise ConfigurationError(f"Invalid integer setting: {e}")

    return AppConfig(
        midtrans=MidtransConfig.from_env(env),
        api=APIConfig(
            host=env.get('API_HOST', '0.0.0.0'),
            port=port
        ),
        logging=LoggingConfig(
            level=env.get('LOG_LEVEL', 'INFO'),
            file=env.get('LOG_FILE')
        ),
        service=ServiceConfig(
            name=env.get('SERVICE_NAME', 'MidtransGateway'),
            shutdown_timeout=shutdown_timeout
        )
    )
