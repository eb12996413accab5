"""Authentication and tenancy configuration management."""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Dict, Mapping, Optional, Tuple

from domains.tenancy.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_PROVIDERS = {"firebase", "mock", "deny"}
_STORES = {"memory", "firestore"}


def _csv(value: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if not value:
        return default
    return tuple(part.strip() for part in value.split(",") if part.strip())


def parse_pinned_tenants(value: Optional[str]) -> Dict[str, Tuple[str, Optional[str]]]:
    """Parse ``email=tenant[:role]`` pairs into a lookup keyed by lowercase email."""

    pinned: Dict[str, Tuple[str, Optional[str]]] = {}
    for item in _csv(value, ()):
        if "=" not in item:
            raise ConfigurationError(f"Invalid pinned tenant assignment: {item!r}")
        email, target = item.split("=", 1)
        tenant_id, _, role = target.partition(":")
        if not email.strip() or not tenant_id.strip():
            raise ConfigurationError(f"Invalid pinned tenant assignment: {item!r}")
        pinned[email.strip().lower()] = (tenant_id.strip(), role.strip() or None)
    return pinned


@dataclass
class AuthConfig:
    """Authentication and tenancy configuration."""

    # Identity provider
    identity_provider: str = "firebase"  # "firebase" | "mock" | "deny"
    firebase_project_id: Optional[str] = None
    clock_skew_s: int = 60

    # Record store
    record_store: str = "memory"  # "memory" | "firestore"
    gcp_project_id: Optional[str] = None
    firestore_emulator_host: Optional[str] = None

    # Roles
    default_role: str = "admin"
    allowed_roles: Tuple[str, ...] = ("owner", "admin", "operator")
    admin_roles: Tuple[str, ...] = ("owner", "admin")

    # Provisioning
    pinned_tenants: Dict[str, Tuple[str, Optional[str]]] = field(default_factory=dict)
    tracking_prefix: str = "LG"
    tracking_base_url: str = "https://rastreio.logitrack.app/rastreio"
    provisioning_url: Optional[str] = None
    provisioning_timeout_s: int = 10

    @property
    def issuer(self) -> Optional[str]:
        if not self.firebase_project_id:
            return None
        return f"https://securetoken.google.com/{self.firebase_project_id}"

    def pinned_assignment(self, email: Optional[str]) -> Optional[Tuple[str, str]]:
        """Return ``(tenant_id, role)`` when ``email`` has a fixed assignment."""

        if not email:
            return None
        entry = self.pinned_tenants.get(email.strip().lower())
        if entry is None:
            return None
        tenant_id, role = entry
        return tenant_id, role or self.default_role

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AuthConfig":
        """Load configuration from environment variables."""

        env = env if env is not None else os.environ
        defaults = cls()

        logger.info("Loading auth configuration from environment variables")
        return cls(
            identity_provider=env.get("IDENTITY_PROVIDER", defaults.identity_provider).strip().lower(),
            firebase_project_id=env.get("FIREBASE_PROJECT_ID") or env.get("GOOGLE_CLOUD_PROJECT"),
            clock_skew_s=int(env.get("CLOCK_SKEW_S", str(defaults.clock_skew_s))),
            record_store=env.get("RECORD_STORE", defaults.record_store).strip().lower(),
            gcp_project_id=env.get("GOOGLE_CLOUD_PROJECT"),
            firestore_emulator_host=env.get("FIRESTORE_EMULATOR_HOST"),
            default_role=env.get("DEFAULT_ROLE", defaults.default_role),
            allowed_roles=_csv(env.get("ALLOWED_ROLES"), defaults.allowed_roles),
            admin_roles=_csv(env.get("ADMIN_ROLES"), defaults.admin_roles),
            pinned_tenants=parse_pinned_tenants(env.get("PINNED_TENANT_ASSIGNMENTS")),
            tracking_prefix=env.get("TRACKING_PREFIX", defaults.tracking_prefix),
            tracking_base_url=env.get("TRACKING_BASE_URL", defaults.tracking_base_url),
            provisioning_url=env.get("PROVISIONING_URL"),
            provisioning_timeout_s=int(env.get("PROVISIONING_TIMEOUT_S", str(defaults.provisioning_timeout_s))),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "AuthConfig":
        """Load configuration from JSON file."""

        try:
            logger.info(f"Loading auth configuration from file: {config_path}")
            with open(config_path, "r") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning(f"Auth config file not found: {config_path}, using defaults")
            return cls()

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown auth config keys: {unknown}")

        values = {k: v for k, v in data.items() if k in known}
        for key in ("allowed_roles", "admin_roles"):
            if key in values:
                raw = values[key]
                values[key] = _csv(raw, ()) if isinstance(raw, str) else tuple(raw)
        if "pinned_tenants" in values:
            raw = values["pinned_tenants"]
            if isinstance(raw, str):
                values["pinned_tenants"] = parse_pinned_tenants(raw)
            else:
                values["pinned_tenants"] = parse_pinned_tenants(
                    ",".join(f"{email}={target}" for email, target in raw.items())
                )

        config = cls(**values)
        logger.info("Auth configuration loaded successfully")
        return config

    def validate(self) -> bool:
        """Validate configuration settings."""

        logger.info("Validating auth configuration")

        if self.identity_provider not in _PROVIDERS:
            raise ConfigurationError(f"Unknown identity provider: {self.identity_provider}")

        if self.record_store not in _STORES:
            raise ConfigurationError(f"Unknown record store: {self.record_store}")

        if self.identity_provider == "firebase" and not self.firebase_project_id:
            raise ConfigurationError("FIREBASE_PROJECT_ID is required for the firebase provider")

        if self.default_role not in self.allowed_roles:
            raise ConfigurationError(f"Default role {self.default_role!r} is not an allowed role")

        stray_admins = [role for role in self.admin_roles if role not in self.allowed_roles]
        if stray_admins:
            logger.warning(f"Admin roles not in allowed roles: {stray_admins}")

        for email, (_tenant, role) in self.pinned_tenants.items():
            if role and role not in self.allowed_roles:
                raise ConfigurationError(f"Pinned role {role!r} for {email} is not an allowed role")

        if self.identity_provider == "deny":
            logger.warning("Identity provider is deny-all; every request will be rejected")

        if not 0 <= self.clock_skew_s <= 60:
            logger.warning(f"Clock skew outside 0-60s will be clamped: {self.clock_skew_s}s")

        if not self.tracking_prefix:
            logger.warning("Tracking prefix is empty")

        logger.info("Auth configuration validation completed")

        return True
