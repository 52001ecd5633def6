"""Factories building the session and API services from settings."""

from virail.api.client import ApiClient
from virail.auth.credentials import CredentialStore
from virail.auth.mode import SessionContext
from virail.auth.redirect import LoggingRedirector, Redirector
from virail.auth.service import AuthService
from virail.auth.storage import JsonFileStore, KeyringStore, KeyValueStore, MemoryStore
from virail.config.settings import Settings, get_settings
from virail.core.http import HTTPTransport, HTTPXTransport
from virail.core.logging import get_logger


logger = get_logger(__name__)


def create_key_value_store(settings: Settings) -> KeyValueStore:
    """Return the storage backend selected by ``auth.storage``."""
    backend = settings.auth.storage
    if backend == "keyring":
        return KeyringStore(settings.auth.keyring_service)
    if backend == "memory":
        return MemoryStore()
    return JsonFileStore(settings.auth.storage_path)


def create_auth_service(
    settings: Settings | None = None,
    *,
    transport: HTTPTransport | None = None,
    store: KeyValueStore | None = None,
    redirector: Redirector | None = None,
) -> AuthService:
    """Build an ``AuthService`` with one shared session context.

    A transport created here is owned, and closed, by the service.
    """
    if settings is None:
        settings = get_settings()

    owns_transport = transport is None
    if transport is None:
        transport = HTTPXTransport()
    if store is None:
        store = create_key_value_store(settings)

    context = SessionContext(settings.auth.initial_mode)
    service = AuthService(
        settings.api.base_url,
        CredentialStore(store, context),
        transport,
        redirector=redirector or LoggingRedirector(),
        probe_path=settings.auth.probe_path,
        login_route=settings.auth.login_route,
        owns_transport=owns_transport,
    )

    logger.debug(
        "auth_service_created",
        base_url=settings.api.base_url,
        storage=store.get_location(),
        mode=context.mode.value,
        category="auth",
    )
    return service


def create_api_client(settings: Settings, transport: HTTPTransport) -> ApiClient:
    return ApiClient(settings.api, transport)
