"""
Service wiring. Built once in the application lifespan and kept on app.state.
"""
from dataclasses import dataclass
from typing import Optional

import httpx

from .config import Settings
from .models.payment import PAYMENT_EVENTS
from .models.travel_request import TRAVEL_REQUESTS
from .services.admin import AdminService
from .services.change_feed import ChangeFeed, ChangeKind
from .services.document_store import DocumentStore
from .services.guide_matcher import GuideMatcher
from .services.llm_client import AltTextGenerator
from .services.messaging import Mailer, PushSender
from .services.notifications import NotificationDispatcher
from .services.payments import PaymentReconciler, RazorpayClient
from .services.profiles import ProfileService
from .services.request_lifecycle import RequestLifecycle
from .services.sessions import SessionManager


@dataclass
class Services:
    config: Settings
    store: DocumentStore
    sessions: SessionManager
    profiles: ProfileService
    admin: AdminService
    matcher: GuideMatcher
    lifecycle: RequestLifecycle
    reconciler: PaymentReconciler
    dispatcher: NotificationDispatcher

    def close(self):
        self.store.close()


def build_services(config: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> Services:
    """
    Construct every service and subscribe the change-feed handlers.

    Args:
        transport: optional httpx transport shared by the outbound clients (tests)
    """
    feed = ChangeFeed()
    store = DocumentStore(config.database_path, feed)

    razorpay = RazorpayClient(config.razorpay_key_id, config.razorpay_key_secret,
                              config.razorpay_base_url, transport=transport)
    mailer = Mailer(config.sendgrid_api_key, config.from_email, config.sendgrid_base_url, transport=transport)
    push = PushSender(config.fcm_project_id, config.fcm_client_email, config.fcm_private_key,
                      token_uri=config.fcm_token_uri, base_url=config.fcm_base_url,
                      icon=config.push_icon, transport=transport)

    matcher = GuideMatcher(store)
    dispatcher = NotificationDispatcher(store, mailer, push)
    reconciler = PaymentReconciler(store, config.razorpay_webhook_secret, config.razorpay_key_secret)

    feed.subscribe(TRAVEL_REQUESTS, ChangeKind.UPDATED, dispatcher.handle_request_updated)
    feed.subscribe(PAYMENT_EVENTS, ChangeKind.CREATED, reconciler.handle_event_created)

    return Services(
        config=config,
        store=store,
        sessions=SessionManager(
            store,
            session_secret=config.session_secret,
            id_token_secret=config.id_token_secret,
            id_token_audience=config.id_token_audience,
            algorithm=config.id_token_algorithm,
            expires_days=config.session_expires_days,
        ),
        profiles=ProfileService(store, AltTextGenerator(config), config.admin_email_list),
        admin=AdminService(store, matcher),
        matcher=matcher,
        lifecycle=RequestLifecycle(store, matcher, razorpay, currency=config.payment_currency),
        reconciler=reconciler,
        dispatcher=dispatcher,
    )
