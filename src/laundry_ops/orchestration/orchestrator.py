"""
Application Orchestrator - Main coordinator for the laundry operations service.

This is the top-level component that ties together all layers:
- Database and repositories
- Pricing, routing and the transition gate
- Notification dispatch
- The order and laundromat services used by the HTTP app and the CLI
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable

from ..business_logic.collaborators import (
    EmailSender,
    LocalPaymentClient,
    LocalPhotoStorage,
    LoggingEmailSender,
    LoggingSmsSender,
    PaymentClient,
    PhotoStorage,
    SmsSender,
)
from ..business_logic.services.laundromat_service import LaundromatService
from ..business_logic.services.notification_dispatcher import NotificationDispatcher, RetryReport
from ..business_logic.services.order_service import OrderService
from ..business_logic.services.pricing_service import PricingService
from ..business_logic.services.routing_service import RoutingResolver
from ..business_logic.services.transition_gate import StatusTransitionGate
from ..data_access.database import Database, create_database
from ..data_access.repositories.capacity_ledger import CapacityLedger
from ..data_access.repositories.customer_repository import CustomerRepository, create_customer_repository
from ..data_access.repositories.laundromat_repository import LaundromatRepository
from ..data_access.repositories.notification_repository import NotificationRepository
from ..data_access.repositories.order_repository import OrderRepository
from .config import ApplicationConfig
from .seed import seed_laundromats

logger = logging.getLogger(__name__)


class ApplicationOrchestrator:
    """
    Main application orchestrator.

    Owns the database and the notification thread pool, and exposes the
    services every entry point (HTTP, CLI) works through.
    """

    def __init__(
        self,
        config: ApplicationConfig,
        database: Database,
        customer_repository: CustomerRepository,
        laundromat_repository: LaundromatRepository,
        order_service: OrderService,
        laundromat_service: LaundromatService,
        dispatcher: NotificationDispatcher,
        executor: ThreadPoolExecutor | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Application configuration
            database: Shared database
            customer_repository: Repository for customer data
            laundromat_repository: Repository for laundromats
            order_service: Order lifecycle service
            laundromat_service: Laundromat administration service
            dispatcher: Notification dispatcher (also runs outbox retries)
            executor: Notification thread pool, if dispatch is async
        """
        self._config = config
        self._database = database
        self._customer_repository = customer_repository
        self._laundromat_repository = laundromat_repository
        self._order_service = order_service
        self._laundromat_service = laundromat_service
        self._dispatcher = dispatcher
        self._executor = executor

    @property
    def config(self) -> ApplicationConfig:
        return self._config

    @property
    def database(self) -> Database:
        return self._database

    @property
    def orders(self) -> OrderService:
        return self._order_service

    @property
    def laundromats(self) -> LaundromatService:
        return self._laundromat_service

    @property
    def customers(self) -> CustomerRepository:
        return self._customer_repository

    def seed(self) -> int:
        """Add the starter laundromat network."""
        return seed_laundromats(self._laundromat_repository)

    def retry_notifications(self, max_attempts: int | None = None) -> RetryReport:
        """Re-send failed notifications from the outbox."""
        return self._dispatcher.retry_failed(max_attempts or self._config.notification_max_attempts)

    def shutdown(self) -> None:
        """Wait for queued notifications, then release resources."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self._database.close()
        logger.info("[APP] Shut down")


def create_orchestrator(
    config: ApplicationConfig | None = None,
    payment_client: PaymentClient | None = None,
    photo_storage: PhotoStorage | None = None,
    email_sender: EmailSender | None = None,
    sms_sender: SmsSender | None = None,
    clock: Callable[[], datetime] | None = None,
) -> ApplicationOrchestrator:
    """
    Factory function to create a fully configured orchestrator.

    Collaborators default to the local development implementations.

    Args:
        config: Application configuration (uses defaults if None)
        payment_client: Payment provider
        photo_storage: Photo storage
        email_sender: Email transport
        sms_sender: SMS transport
        clock: Source of "now" (aware datetimes)

    Returns:
        Configured ApplicationOrchestrator instance
    """
    # Use default config if not provided
    if config is None:
        config = ApplicationConfig.from_defaults()

    # Ensure directories exist
    config.ensure_directories()

    payment_client = payment_client or LocalPaymentClient()
    photo_storage = photo_storage or LocalPhotoStorage()
    email_sender = email_sender or LoggingEmailSender()
    sms_sender = sms_sender or LoggingSmsSender()

    # Data access
    database = create_database(config.database_path)
    customer_repository = create_customer_repository(database)
    laundromat_repository = LaundromatRepository(database)
    order_repository = OrderRepository(database)
    outbox = NotificationRepository(database)
    ledger = CapacityLedger(database)

    # Services
    windows = config.window_map()
    pricing = PricingService(minimum_order_cents=config.minimum_order_cents, currency=config.currency)
    routing = RoutingResolver(laundromat_repository, ledger)
    gate = StatusTransitionGate(
        database=database,
        order_repository=order_repository,
        capacity_ledger=ledger,
        pricing_service=pricing,
        payment_client=payment_client,
        photo_storage=photo_storage,
        time_windows=windows,
        local_timezone=config.local_timezone,
        clock=clock,
    )
    dispatcher = NotificationDispatcher(email_sender, sms_sender, outbox=outbox, clock=clock)

    executor = None
    if config.notify_async:
        executor = ThreadPoolExecutor(
            max_workers=config.notification_workers,
            thread_name_prefix="notify",
        )

    order_service = OrderService(
        database=database,
        customer_repository=customer_repository,
        order_repository=order_repository,
        laundromat_repository=laundromat_repository,
        capacity_ledger=ledger,
        routing_resolver=routing,
        pricing_service=pricing,
        transition_gate=gate,
        dispatcher=dispatcher,
        outbox=outbox,
        payment_client=payment_client,
        time_windows=windows,
        base_url=config.base_url,
        token_ttl_days=config.token_ttl_days,
        currency=config.currency,
        local_timezone=config.local_timezone,
        clock=clock,
        executor=executor,
    )

    # Create orchestrator
    return ApplicationOrchestrator(
        config=config,
        database=database,
        customer_repository=customer_repository,
        laundromat_repository=laundromat_repository,
        order_service=order_service,
        laundromat_service=LaundromatService(laundromat_repository, routing),
        dispatcher=dispatcher,
        executor=executor,
    )
