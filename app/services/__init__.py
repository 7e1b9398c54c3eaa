"""Services for the booking backend."""
from .document_store import DocumentStore
from .change_feed import ChangeFeed, ChangeEvent, ChangeKind
from .guide_matcher import GuideMatcher
from .request_lifecycle import RequestLifecycle
from .notifications import NotificationDispatcher
from .payments import PaymentReconciler, RazorpayClient
from .sessions import SessionManager

__all__ = [
    "DocumentStore",
    "ChangeFeed",
    "ChangeEvent",
    "ChangeKind",
    "GuideMatcher",
    "RequestLifecycle",
    "NotificationDispatcher",
    "PaymentReconciler",
    "RazorpayClient",
    "SessionManager",
]
