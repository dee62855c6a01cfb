"""
Process-wide configuration for the email intake pipeline.

Settings are read from environment variables once at process entry and
passed explicitly into every component. The resulting object is frozen.
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from domain.errors import InvalidPhoneNumber
from services.phone import validate_phone_number

logger = logging.getLogger(__name__)

DEFAULT_TENANT = 'utah_mechanical_systems'
DEFAULT_COMPANY_NAME = 'Utah Mechanical Systems'
DEFAULT_OPENAI_MODEL = 'gpt-4o-mini'
DEFAULT_OPENPHONE_API_URL = 'https://api.openphone.com/v1/messages'

REQUIRED_VARIABLES = (
    'OPENAI_API_KEY',
    'OPENPHONE_API_KEY',
    'OPENPHONE_FROM_NUMBER',
    'DEFAULT_NOTIFICATION_NUMBERS',
    'S3_BUCKET_NAME',
)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class Settings:
    """
    Immutable runtime configuration.

    Attributes:
        openai_api_key: API key for the classification model
        openphone_api_key: API key for the SMS transport
        openphone_from_number: Origin number for outbound SMS (canonical form)
        notification_numbers: Default recipients for service-request alerts
        bucket_name: S3 bucket holding incoming and archived emails
        tenant: Tenant segment used in every key prefix
        company_name: Company name used in the classifier instructions
        openai_model: Chat completion model name
        openphone_api_url: Messages endpoint of the SMS transport
        max_retries: Attempts per classifier call and per notification send
        retry_delay_seconds: Base delay for exponential backoff
        http_timeout_seconds: Timeout for outbound HTTP calls
        log_level: Root log level name
    """
    openai_api_key: str
    openphone_api_key: str
    openphone_from_number: str
    notification_numbers: Tuple[str, ...]
    bucket_name: str
    tenant: str = DEFAULT_TENANT
    company_name: str = DEFAULT_COMPANY_NAME
    openai_model: str = DEFAULT_OPENAI_MODEL
    openphone_api_url: str = DEFAULT_OPENPHONE_API_URL
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    http_timeout_seconds: float = 30.0
    log_level: str = 'INFO'

    @property
    def incoming_prefix(self) -> str:
        return f"incoming/{self.tenant}/"

    def __repr__(self) -> str:
        # Keep API keys out of logs
        return (
            f"Settings(bucket_name={self.bucket_name!r}, tenant={self.tenant!r}, "
            f"openai_model={self.openai_model!r}, "
            f"notification_numbers={len(self.notification_numbers)}, "
            f"max_retries={self.max_retries})"
        )


def _parse_number_list(raw: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(',') if part.strip())


def _read_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got: {raw!r}")


def _read_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got: {raw!r}")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Settings: Validated, immutable configuration

    Raises:
        ConfigurationError: If any required variable is missing or a value
            is malformed. All missing variables are reported together.
    """
    if environ is None:
        environ = os.environ

    missing = [name for name in REQUIRED_VARIABLES if not environ.get(name, '').strip()]
    notification_numbers = _parse_number_list(environ.get('DEFAULT_NOTIFICATION_NUMBERS', ''))
    if 'DEFAULT_NOTIFICATION_NUMBERS' not in missing and not notification_numbers:
        missing.append('DEFAULT_NOTIFICATION_NUMBERS')

    if missing:
        raise ConfigurationError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )

    try:
        from_number = validate_phone_number(environ['OPENPHONE_FROM_NUMBER'])
    except InvalidPhoneNumber as e:
        raise ConfigurationError(f"OPENPHONE_FROM_NUMBER is invalid: {e}")

    max_retries = _read_int(environ, 'MAX_RETRIES', 3)
    if max_retries < 1:
        raise ConfigurationError(f"MAX_RETRIES must be at least 1, got: {max_retries}")

    settings = Settings(
        openai_api_key=environ['OPENAI_API_KEY'].strip(),
        openphone_api_key=environ['OPENPHONE_API_KEY'].strip(),
        openphone_from_number=from_number,
        notification_numbers=notification_numbers,
        bucket_name=environ['S3_BUCKET_NAME'].strip(),
        tenant=environ.get('TENANT') or DEFAULT_TENANT,
        company_name=environ.get('COMPANY_NAME') or DEFAULT_COMPANY_NAME,
        openai_model=environ.get('OPENAI_MODEL') or DEFAULT_OPENAI_MODEL,
        openphone_api_url=environ.get('OPENPHONE_API_URL') or DEFAULT_OPENPHONE_API_URL,
        max_retries=max_retries,
        retry_delay_seconds=_read_float(environ, 'RETRY_DELAY_SECONDS', 1.0),
        http_timeout_seconds=_read_float(environ, 'HTTP_TIMEOUT_SECONDS', 30.0),
        log_level=(environ.get('LOG_LEVEL') or 'INFO').upper(),
    )

    logger.info(f"Configuration loaded: {settings!r}")
    return settings
