#!/usr/bin/env python3
"""
LogiTrack API: Flask composition root.

Responsibilities:
- Build the identity provider, record store and repositories from ``AuthConfig``
- Wire the provisioning, claims and order lifecycle services into one runtime
- Register request logging context, CORS, error handlers and blueprints

Notes:
- Handlers reach the runtime through ``current_app.config["API_RUNTIME"]``
- Tests pass a provider and store directly instead of building them from config
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from flask import Flask
from flask_cors import CORS

from adapters.db.firestore import FirestoreRecordStore, get_firestore_client
from adapters.db.memory import InMemoryRecordStore
from adapters.db.order_store import OrderRepository
from adapters.db.record_store import BaseRecordStore
from adapters.db.records_store import TenantRecordsRepository
from adapters.db.tenant_store import TenantRepository
from adapters.db.users_store import ClaimsRepository
from adapters.providers.base import IdentityProvider
from adapters.providers.factory import build_identity_provider
from adapters.providers.token_verifier import TokenVerifier
from app_platform.config.auth import AuthConfig
from app_platform.errors.api import register_error_handlers
from application.orders.lifecycle import OrderLifecycleEngine
from application.tenancy.claims_admin import ClaimsAdminService
from application.tenancy.provisioning import ProvisioningService
from apps.api.http.health_routes import health_bp
from apps.api.http.order_routes import orders_bp
from apps.api.http.records_routes import records_bp
from apps.api.http.tenancy_routes import tenancy_bp
from domains.tenancy.exceptions import ConfigurationError
from logging_lib import configure as configure_structured_logging, get_logger as get_structured_logger
from logging_lib.flask_ext import register_flask_context


logger = get_structured_logger("api.main")


@dataclass(slots=True)
class ApiRuntime:
    """Everything request handlers need, built once per app."""

    config: AuthConfig
    store: BaseRecordStore
    provider: IdentityProvider
    verifier: TokenVerifier
    claims_repo: ClaimsRepository
    tenant_repo: TenantRepository
    order_repo: OrderRepository
    records_repo: TenantRecordsRepository
    provisioning: ProvisioningService
    claims_admin: ClaimsAdminService
    engine: OrderLifecycleEngine


def _build_store(config: AuthConfig) -> BaseRecordStore:
    kind = (config.record_store or "memory").lower()
    if kind == "memory":
        logger.warning("Using in-memory record store; data is not persisted")
        return InMemoryRecordStore()
    if kind == "firestore":
        return FirestoreRecordStore(get_firestore_client(config))
    raise ConfigurationError(f"Unknown record store: {config.record_store}")


def bootstrap_runtime(
    config: AuthConfig,
    *,
    provider: Optional[IdentityProvider] = None,
    store: Optional[BaseRecordStore] = None,
) -> ApiRuntime:
    """Compose the services behind the HTTP surface."""

    provider = provider or build_identity_provider(config)
    store = store or _build_store(config)

    claims_repo = ClaimsRepository(store)
    tenant_repo = TenantRepository(store)
    order_repo = OrderRepository(store)
    provisioning = ProvisioningService(store, claims_repo, tenant_repo, provider, config)

    logger.info(
        "API runtime constructed",
        provider_type=provider.__class__.__name__,
        store_type=store.__class__.__name__,
    )

    return ApiRuntime(
        config=config,
        store=store,
        provider=provider,
        verifier=TokenVerifier(provider),
        claims_repo=claims_repo,
        tenant_repo=tenant_repo,
        order_repo=order_repo,
        records_repo=TenantRecordsRepository(store),
        provisioning=provisioning,
        claims_admin=ClaimsAdminService(claims_repo, tenant_repo, provisioning, config),
        engine=OrderLifecycleEngine(order_repo, tenant_repo, config),
    )


def create_app(
    config: Optional[AuthConfig] = None,
    *,
    provider: Optional[IdentityProvider] = None,
    store: Optional[BaseRecordStore] = None,
) -> Flask:
    """Application factory."""

    config = config or AuthConfig.from_env()
    config.validate()

    app = Flask(__name__)
    app.config["API_RUNTIME"] = bootstrap_runtime(config, provider=provider, store=store)

    CORS(app)
    register_flask_context(app, service="api")
    register_error_handlers(app)

    app.register_blueprint(health_bp)
    app.register_blueprint(tenancy_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(records_bp)

    return app


if __name__ == '__main__':
    configure_structured_logging(service="api", env=os.getenv("APP_ENV", "local"))

    app = create_app()
    port = int(os.getenv('PORT', '8080'))
    logger.info("Starting LogiTrack API", port=port)
    app.run(host='0.0.0.0', port=port, debug=False)
