# Application Package
from .scheduler import PriorityScheduler, ScheduledUnit, SessionStatus
from .session import CursorMove, OutcomeResult, SessionCursor
from .stats import DeckStats, combine_stats, deck_stats
from .study_service import SessionPlan, StudyService

__all__ = [
    "CursorMove",
    "DeckStats",
    "OutcomeResult",
    "PriorityScheduler",
    "ScheduledUnit",
    "SessionCursor",
    "SessionPlan",
    "SessionStatus",
    "StudyService",
    "combine_stats",
    "deck_stats",
]
