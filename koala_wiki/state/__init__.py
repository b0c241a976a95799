from .drafts import Draft, DraftFields, DraftStore, draft_key
from .search import SearchFilters, SearchStore
from .session import SessionPhase, SessionState, SessionStore
from .ui import Modal, Toast, UIStore

__all__ = [
    "Draft",
    "DraftFields",
    "DraftStore",
    "draft_key",
    "SearchFilters",
    "SearchStore",
    "SessionPhase",
    "SessionState",
    "SessionStore",
    "Modal",
    "Toast",
    "UIStore",
]
