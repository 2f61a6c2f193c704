"""Session state: reply-chain threads, rate limiting and interjection timers."""

from nanothread.session.rate_gate import RateGate
from nanothread.session.store import CONVERSATIONS_NAMESPACE, SessionStore
from nanothread.session.threads import ThreadResolver

__all__ = ["RateGate", "ThreadResolver", "SessionStore", "CONVERSATIONS_NAMESPACE"]
