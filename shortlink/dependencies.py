"""Composition root and request-scoped dependencies.

``ServiceManager`` builds and owns every shared component (database, store,
cache, click recorder, code generator, resolver, link service). It is
constructed explicitly, one per application, and attached to ``app.state`` so
tests get a fresh cache and store per instance instead of sharing module-level
state.
"""

import asyncio
import datetime
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request

from shortlink.accounting import ClickRecorder
from shortlink.cache import LinkCache
from shortlink.codes import CodeGenerator
from shortlink.config import Settings, get_settings
from shortlink.database import Database
from shortlink.link_service import LinkService
from shortlink.resolver import Resolver, utc_now
from shortlink.store import LinkStore, SQLAlchemyLinkStore


# ============================================================================
# SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Owner of the shared resources behind every request.

    Args:
        settings: Configuration; defaults to ``get_settings()``.
        store: Pre-built store (tests); when omitted a SQLAlchemy store is
            built on ``settings.DATABASE_URL`` during ``initialize()``.
        clock: Time source used for expiry checks.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[LinkStore] = None,
        clock: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self.settings = settings or get_settings()
        self.logger = self._setup_logger()
        self.database: Optional[Database] = None
        self.store = store
        self.clock = clock
        self.cache = LinkCache(self.settings.CACHE_CAPACITY, logger=self.logger.getChild("cache"))
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        async with self._init_lock:
            if not self._initialized:
                await self._build()

    async def _build(self) -> None:
        if self.store is None:
            self.database = Database.from_settings(self.settings)
            await self.database.init_schema()
            self.store = SQLAlchemyLinkStore(self.database, logger=self.logger.getChild("store"))

        self.clicks = ClickRecorder(self.store, logger=self.logger.getChild("accounting"))
        self.generator = CodeGenerator(
            self.store,
            strategy=self.settings.CODE_STRATEGY,
            random_length=self.settings.RANDOM_CODE_LENGTH,
            logger=self.logger.getChild("codes"),
        )
        self.resolver = Resolver(
            self.store,
            self.cache,
            self.clicks,
            clock=self.clock,
            logger=self.logger.getChild("resolver"),
        )
        self.links = LinkService(
            self.store,
            self.cache,
            self.generator,
            self.settings,
            logger=self.logger.getChild("service"),
        )
        self._initialized = True
        self.logger.info(
            f"{self.settings.APP_NAME} ready: cache capacity {self.cache.capacity}, "
            f"code strategy {self.settings.CODE_STRATEGY}"
        )

    async def cleanup(self) -> None:
        """Flush in-flight click increments and release the database."""
        if not self._initialized:
            return
        await self.clicks.drain()
        if self.database is not None:
            await self.database.close()
        self._initialized = False

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("shortlink")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL.upper())
        return logger


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request tracking data plus access to the shared manager.

    Attributes:
        services: Shared service manager
        request_id: Unique identifier for this request
        client_ip: Client IP address (proxy headers first)
        user_agent: Client user agent string
        start_time: Request start timestamp
    """

    services: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    start_time: float = field(default_factory=time.time)

    @property
    def settings(self) -> Settings:
        return self.services.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger with request context attached."""
        return logging.LoggerAdapter(
            self.services.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


def client_ip_from(request: Request) -> Optional[str]:
    """X-Forwarded-For (first hop), then X-Real-IP, then the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager(request: Request) -> ServiceManager:
    manager: ServiceManager = request.app.state.services
    if not manager.initialized:
        await manager.initialize()
    return manager


async def get_request_context(
    request: Request,
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext(
        services=manager,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        client_ip=client_ip_from(request),
        user_agent=request.headers.get("user-agent"),
    )


def get_link_service(manager: ServiceManager = Depends(get_service_manager)) -> LinkService:
    return manager.links


def get_resolver(manager: ServiceManager = Depends(get_service_manager)) -> Resolver:
    return manager.resolver
