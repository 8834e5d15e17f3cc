"""
Sync configuration.

Loaded from a YAML file or FIELDSYNC_* environment variables; keyword
overrides passed to the loaders win over loaded values.

config.yaml:
    sync:
      host_url: https://warehouse.example.org
      api_key: abc123
      app_name: field-app
      app_secret: s3cret
      website_id: 23
      survey_id: 101
      timeout: 30
"""

import os
import base64
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds
ENV_PREFIX = "FIELDSYNC_"

API_BASE = "api"
API_VERSION = "v1"
API_SAMPLES_PATH = "samples"

# value or zero-argument provider, e.g. a keyring lookup
Credential = Union[str, Callable[[], Optional[str]]]

# async (submission, media) -> (submission, media)
SendHook = Callable[[Dict[str, Any], List[Any]], Awaitable[Tuple[Dict[str, Any], List[Any]]]]


def _resolve(value: Any) -> Any:
    return value() if callable(value) else value


@dataclass
class SyncConfig:
    """
    Remote warehouse configuration.

    Attributes:
        host_url: Warehouse base URL
        api_key: Sent as the x-api-key header
        app_name: App credential, sent as a form field with multipart bodies
        app_secret: App credential, sent as a form field with multipart bodies
        website_id: Warehouse website id
        survey_id: Default survey id for samples without one
        user: Username or provider callable for Basic auth
        password: Password or provider callable for Basic auth
        timeout: Request timeout in seconds, or a callable returning it
        api_base: API path prefix
        api_version: API version segment
        on_send: Optional async hook rewriting (submission, media) before sending
    """
    host_url: Optional[str] = None
    api_key: Optional[str] = None
    app_name: Optional[str] = None
    app_secret: Optional[str] = None
    website_id: Optional[int] = None
    survey_id: Optional[int] = None
    user: Optional[Credential] = None
    password: Optional[Credential] = None
    timeout: Union[float, Callable[[], float]] = DEFAULT_TIMEOUT
    api_base: str = API_BASE
    api_version: str = API_VERSION
    on_send: Optional[SendHook] = None

    # ==================== Derived values ====================

    @property
    def samples_url(self) -> str:
        """POST endpoint for new samples."""
        self.validate()
        return "/".join([
            self.host_url.rstrip("/"),
            self.api_base.strip("/"),
            self.api_version.strip("/"),
            API_SAMPLES_PATH,
        ])

    def get_timeout(self, override: Optional[float] = None) -> float:
        """Resolve the request timeout, preferring a per-call override."""
        timeout = override if override is not None else _resolve(self.timeout)
        return float(timeout) if timeout else DEFAULT_TIMEOUT

    def get_user_auth(self) -> Optional[str]:
        """
        Build the Authorization header value.

        Returns:
            "Basic <base64(user:password)>", or None without user credentials
        """
        user = _resolve(self.user)
        password = _resolve(self.password)
        if not user or not password:
            return None
        token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
        return f"Basic {token}"

    def get_headers(self) -> Dict[str, str]:
        """Authentication headers for warehouse requests."""
        headers = {}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        authorization = self.get_user_auth()
        if authorization:
            headers["Authorization"] = authorization
        return headers

    def get_form_auth(self) -> Dict[str, str]:
        """App and warehouse identifiers appended to multipart bodies."""
        form = {
            "appname": self.app_name,
            "appsecret": self.app_secret,
            "website_id": self.website_id,
            "survey_id": self.survey_id,
        }
        return {k: str(v) for k, v in form.items() if v is not None}

    def validate(self) -> None:
        """
        Check the configuration can reach a warehouse.

        Raises:
            ConfigError: If host_url is missing
        """
        if not self.host_url:
            raise ConfigError("A host_url must be configured for remote sync")

    # ==================== Loaders ====================

    @classmethod
    def _from_mapping(cls, data: Dict[str, Any]) -> 'SyncConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")
        values = {k: v for k, v in data.items() if k in known and v is not None}
        for name in ("website_id", "survey_id"):
            if name in values:
                try:
                    values[name] = int(values[name])
                except (TypeError, ValueError):
                    raise ConfigError(f"{name} must be an integer, got {values[name]!r}") from None
        if "timeout" in values and not callable(values["timeout"]):
            try:
                values["timeout"] = float(values["timeout"])
            except (TypeError, ValueError):
                raise ConfigError(f"timeout must be a number, got {values['timeout']!r}") from None
        return cls(**values)

    @classmethod
    def from_yaml(cls, path: Union[str, Path], **overrides: Any) -> 'SyncConfig':
        """
        Load from a YAML file. Reads the "sync" section when present,
        otherwise the top level.

        Raises:
            ConfigError: If the file can't be read or parsed
        """
        path = Path(path)
        try:
            data = yaml.safe_load(path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot load config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must be a mapping")
        section = data.get("sync", data)
        config = cls._from_mapping({**section, **overrides})
        logger.debug(f"Loaded sync config from {path}")
        return config

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, **overrides: Any) -> 'SyncConfig':
        """
        Load from environment variables, e.g. FIELDSYNC_HOST_URL,
        FIELDSYNC_API_KEY, FIELDSYNC_SURVEY_ID.
        """
        data = {}
        for f in fields(cls):
            if f.name == "on_send":
                continue
            value = os.getenv(prefix + f.name.upper())
            if value is not None:
                data[f.name] = value
        data.update(overrides)
        return cls._from_mapping(data)
