from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

JWT_PLACEHOLDER_SECRET = "your_jwt_secret_key_here"
SUPPORTED_JWT_ALGORITHMS = {"HS256", "HS384", "HS512"}
PERMISSION_FIELDS = ("edit", "download", "print", "review", "comment", "chat")
CUSTOMIZATION_FIELDS = ("comments", "feedback", "forcesave", "submitForm")
DEFAULT_PRESIGNED_URL_EXPIRY = 7 * 24 * 60 * 60

DEFAULT_FILE_TYPES: dict[str, str] = {
    "docx": "word",
    "doc": "word",
    "docm": "word",
    "dotx": "word",
    "odt": "word",
    "rtf": "word",
    "xlsx": "cell",
    "xls": "cell",
    "xlsm": "cell",
    "ods": "cell",
    "csv": "cell",
    "pptx": "slide",
    "ppt": "slide",
    "pptm": "slide",
    "odp": "slide",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _split_csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return tuple()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env(name: str) -> str | None:
    raw_value = os.getenv(name)
    if raw_value is None:
        return None
    normalized = raw_value.strip()
    return normalized or None


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_pairs(value: str) -> dict[str, str]:
    """Parse ``key=value,key=value`` into a dict."""
    pairs: dict[str, str] = {}
    for item in _split_csv(value):
        key, sep, raw = item.partition("=")
        if not sep or not key.strip() or not raw.strip():
            raise ValueError(f"expected key=value, got {item!r}")
        pairs[key.strip()] = raw.strip()
    return pairs


def _parse_flag_map(value: str, allowed: tuple[str, ...]) -> dict[str, bool]:
    flags: dict[str, bool] = {}
    for key, raw in _parse_pairs(value).items():
        if key not in allowed:
            raise ValueError(f"unknown flag {key!r}")
        flags[key] = _parse_bool(raw)
    return flags


def _positive_int(value: Any) -> int:
    parsed = int(value)
    if parsed <= 0:
        raise ValueError("must be positive")
    return parsed


@dataclass(frozen=True)
class PermissionDefaults:
    """Configured permission defaults. ``None`` means "not configured"."""

    edit: bool | None = None
    download: bool | None = None
    print: bool | None = None
    review: bool | None = None
    comment: bool | None = None
    chat: bool | None = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "PermissionDefaults":
        return cls(**{name: _parse_bool(values[name]) for name in PERMISSION_FIELDS if values.get(name) is not None})


@dataclass(frozen=True)
class CustomizationDefaults:
    comments: bool | None = None
    feedback: bool | None = None
    forcesave: bool | None = None
    submitForm: bool | None = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "CustomizationDefaults":
        return cls(
            **{name: _parse_bool(values[name]) for name in CUSTOMIZATION_FIELDS if values.get(name) is not None}
        )


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    service_name: str = "onlyoffice-bridge"
    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("*",)
    api_prefix: str = ""
    jwt_secret: str = JWT_PLACEHOLDER_SECRET
    jwt_algorithm: str = "HS256"
    jwt_expires_in: int = 3600
    callback_url: str = ""
    document_server_url: str = ""
    editor_internal_url: str | None = None
    default_lang: str = "zh-CN"
    minio_endpoint: str | None = None
    minio_port: int = 9000
    minio_use_ssl: bool = False
    minio_access_key: str | None = None
    minio_secret_key: str | None = None
    minio_bucket: str = "documents"
    minio_region: str = "us-east-1"
    use_presigned_url: bool = True
    presigned_url_expiry: int = DEFAULT_PRESIGNED_URL_EXPIRY
    download_path: str = "./downloads"
    download_timeout_seconds: float = 30.0
    download_max_redirects: int = 5
    default_permissions: PermissionDefaults = field(default_factory=PermissionDefaults)
    default_customization: CustomizationDefaults = field(default_factory=CustomizationDefaults)
    file_types: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_FILE_TYPES))

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def object_store_configured(self) -> bool:
        return bool(self.minio_endpoint and self.minio_access_key and self.minio_secret_key)

    @property
    def object_store_endpoint_url(self) -> str:
        protocol = "https" if self.minio_use_ssl else "http"
        return f"{protocol}://{self.minio_endpoint}:{self.minio_port}"


def read_config_file(path: str | os.PathLike[str]) -> dict[str, Any]:
    """Read the sectioned JSON config file, or ``{}`` when it does not exist."""
    config_path = Path(path)
    if not config_path.exists():
        logger.warning("Config file %s not found, using defaults", config_path)
        return {}
    with config_path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise RuntimeError(f"Config file {config_path} must contain a JSON object")
    logger.info("Loaded config file %s", config_path)
    return data


def _flatten_config_file(data: Mapping[str, Any]) -> dict[str, Any]:
    server = data.get("server") or {}
    jwt_section = data.get("jwt") or {}
    onlyoffice = data.get("onlyoffice") or {}
    minio = data.get("minio") or {}
    document = data.get("document") or {}

    values: dict[str, Any] = {
        "host": server.get("host"),
        "port": server.get("port"),
        "jwt_secret": jwt_section.get("secret"),
        "jwt_algorithm": jwt_section.get("algorithm"),
        "jwt_expires_in": jwt_section.get("expiresIn"),
        "callback_url": onlyoffice.get("callbackUrl"),
        "document_server_url": onlyoffice.get("documentServerUrl"),
        "editor_internal_url": onlyoffice.get("internalUrl"),
        "default_lang": onlyoffice.get("defaultLang"),
        "minio_endpoint": minio.get("endpoint"),
        "minio_port": minio.get("port"),
        "minio_use_ssl": minio.get("useSSL"),
        "minio_access_key": minio.get("accessKey"),
        "minio_secret_key": minio.get("secretKey"),
        "minio_bucket": minio.get("bucket"),
        "minio_region": minio.get("region"),
        "use_presigned_url": minio.get("usePresignedUrl"),
        "presigned_url_expiry": minio.get("presignedUrlExpiry"),
        "download_path": document.get("downloadPath"),
    }
    if isinstance(document.get("defaultPermissions"), dict):
        values["default_permissions"] = document["defaultPermissions"]
    if isinstance(document.get("defaultCustomization"), dict):
        values["default_customization"] = document["defaultCustomization"]
    if isinstance(data.get("fileTypes"), dict):
        values["file_types"] = {**DEFAULT_FILE_TYPES, **data["fileTypes"]}
    return {key: value for key, value in values.items() if value is not None}


_ENV_FIELDS = {
    "ENV": "env",
    "SERVICE_NAME": "service_name",
    "HOST": "host",
    "PORT": "port",
    "LOG_LEVEL": "log_level",
    "API_PREFIX": "api_prefix",
    "JWT_SECRET": "jwt_secret",
    "JWT_ALGORITHM": "jwt_algorithm",
    "JWT_EXPIRES_IN": "jwt_expires_in",
    "ONLYOFFICE_CALLBACK_URL": "callback_url",
    "ONLYOFFICE_DOCUMENT_SERVER_URL": "document_server_url",
    "ONLYOFFICE_INTERNAL_URL": "editor_internal_url",
    "ONLYOFFICE_DEFAULT_LANG": "default_lang",
    "MINIO_ENDPOINT": "minio_endpoint",
    "MINIO_PORT": "minio_port",
    "MINIO_USE_SSL": "minio_use_ssl",
    "MINIO_ACCESS_KEY": "minio_access_key",
    "MINIO_SECRET_KEY": "minio_secret_key",
    "MINIO_BUCKET": "minio_bucket",
    "MINIO_REGION": "minio_region",
    "MINIO_USE_PRESIGNED_URL": "use_presigned_url",
    "MINIO_PRESIGNED_URL_EXPIRY": "presigned_url_expiry",
    "DOCUMENT_DOWNLOAD_PATH": "download_path",
    "DOWNLOAD_TIMEOUT_SECONDS": "download_timeout_seconds",
    "DOWNLOAD_MAX_REDIRECTS": "download_max_redirects",
}


def _environment_overrides() -> dict[str, Any]:
    values: dict[str, Any] = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = _env(env_name)
        if raw is not None:
            values[field_name] = raw

    cors_origins = _env("CORS_ORIGINS")
    if cors_origins is not None:
        values["cors_origins"] = _split_csv(cors_origins)
    if _env("DEFAULT_PERMISSIONS") is not None:
        values["default_permissions"] = _parse_flag_map(_env("DEFAULT_PERMISSIONS"), PERMISSION_FIELDS)
    if _env("DEFAULT_CUSTOMIZATION") is not None:
        values["default_customization"] = _parse_flag_map(_env("DEFAULT_CUSTOMIZATION"), CUSTOMIZATION_FIELDS)
    if _env("FILE_TYPES") is not None:
        values["file_types"] = {**DEFAULT_FILE_TYPES, **_parse_pairs(_env("FILE_TYPES"))}
    return values


_INT_FIELDS = ("port", "jwt_expires_in", "minio_port", "presigned_url_expiry", "download_max_redirects")
_BOOL_FIELDS = ("minio_use_ssl", "use_presigned_url")


def collect_invalid_settings(raw: Mapping[str, Any]) -> list[str]:
    invalid_values: list[str] = []

    for name in _INT_FIELDS:
        if name in raw:
            try:
                _positive_int(raw[name])
            except (TypeError, ValueError):
                invalid_values.append(f"{name} must be a positive integer")

    for name in _BOOL_FIELDS:
        if name in raw:
            try:
                _parse_bool(raw[name])
            except ValueError:
                invalid_values.append(f"{name} must be a boolean")

    if "download_timeout_seconds" in raw:
        try:
            if float(raw["download_timeout_seconds"]) <= 0:
                raise ValueError("must be positive")
        except (TypeError, ValueError):
            invalid_values.append("download_timeout_seconds must be a positive number")

    algorithm = str(raw.get("jwt_algorithm", "HS256")).upper()
    if algorithm not in SUPPORTED_JWT_ALGORITHMS:
        invalid_values.append("jwt_algorithm must be one of: HS256, HS384, HS512")

    for name, allowed in (("default_permissions", PERMISSION_FIELDS), ("default_customization", CUSTOMIZATION_FIELDS)):
        values = raw.get(name)
        if isinstance(values, Mapping):
            for key, value in values.items():
                if key not in allowed:
                    invalid_values.append(f"{name} has unknown flag {key}")
                    continue
                try:
                    _parse_bool(value)
                except ValueError:
                    invalid_values.append(f"{name}.{key} must be a boolean")

    file_types = raw.get("file_types")
    if isinstance(file_types, Mapping):
        for extension, document_type in file_types.items():
            if document_type not in {"word", "cell", "slide", "pdf"}:
                invalid_values.append(f"file_types.{extension} must be one of: word, cell, slide, pdf")

    return invalid_values


def _coerce(raw: Mapping[str, Any]) -> dict[str, Any]:
    values = dict(raw)
    for name in _INT_FIELDS:
        if name in values:
            values[name] = int(values[name])
    for name in _BOOL_FIELDS:
        if name in values:
            values[name] = _parse_bool(values[name])
    if "download_timeout_seconds" in values:
        values["download_timeout_seconds"] = float(values["download_timeout_seconds"])
    if "jwt_algorithm" in values:
        values["jwt_algorithm"] = str(values["jwt_algorithm"]).upper()
    if "default_permissions" in values:
        values["default_permissions"] = PermissionDefaults.from_mapping(values["default_permissions"])
    if "default_customization" in values:
        values["default_customization"] = CustomizationDefaults.from_mapping(values["default_customization"])
    if "api_prefix" in values:
        prefix = str(values["api_prefix"]).strip("/")
        values["api_prefix"] = f"/{prefix}" if prefix else ""
    for name in ("document_server_url", "editor_internal_url"):
        if isinstance(values.get(name), str):
            values[name] = values[name].rstrip("/")
    return values


def load_settings(config_path: str | os.PathLike[str] | None = None) -> Settings:
    """Build settings from defaults, the JSON config file, then the environment."""
    path = config_path or _env("CONFIG_FILE") or "config.json"
    raw: dict[str, Any] = {}
    raw.update(_flatten_config_file(read_config_file(path)))

    try:
        raw.update(_environment_overrides())
    except ValueError as exc:
        raise RuntimeError(f"Application startup blocked by invalid environment configuration.\n- {exc}") from exc

    invalid_values = collect_invalid_settings(raw)
    if invalid_values:
        message_lines = ["Application startup blocked by invalid configuration.", ""]
        message_lines.append("Invalid values:")
        message_lines.extend(f"- {message}" for message in invalid_values)
        raise RuntimeError("\n".join(message_lines))

    settings = Settings(**_coerce(raw))
    if settings.jwt_secret == JWT_PLACEHOLDER_SECRET and settings.is_production:
        logger.warning("JWT_SECRET is the placeholder value; editor tokens are disabled")
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
