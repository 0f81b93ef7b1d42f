"""Session bridge between a call leg and a realtime AI leg.

This module provides the per-call orchestration layer:
- SessionBridge: pairs the two legs, routes audio and events, owns teardown
- CommitScheduler: periodic commit/response cadence toward the AI leg
- CallSession: explicit per-call state record
"""

__all__ = [
    "BridgeSettings",
    "CallSession",
    "CommitScheduler",
    "SessionBridge",
    "SessionState",
]

from callbridge.bridge.commit_scheduler import CommitScheduler
from callbridge.bridge.session import CallSession, SessionState
from callbridge.bridge.session_bridge import BridgeSettings, SessionBridge
