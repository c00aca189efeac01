"""Notification Hub - Per-user popup and task-count sessions"""
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from pymongo.database import Database

from ..config.settings import settings
from ..domain.models import Profile
from ..realtime.change_feed import ChangeFeed
from ..repositories.profile_repo import ProfileRepository
from .assignment_notifier import AssignmentNotifier
from .popup_mediator import PopupMediator
from .task_count_service import TaskCountService, TaskCountWatcher
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class UserNotificationSession:
    """Popup channel, assignment notifier and count watcher of one user"""
    user: Profile
    popups: PopupMediator
    notifier: AssignmentNotifier
    watcher: TaskCountWatcher

    @property
    def task_count(self) -> Optional[int]:
        return self.watcher.count

    def close(self) -> None:
        self.notifier.close()
        self.watcher.close()


class NotificationHub:
    """
    Creates sessions on first use and keeps them while the user is active

    A session untouched for idle_timeout_seconds is closed on the next
    session_for call; close_session ends one explicitly on logout.
    """

    def __init__(
        self,
        database: Optional[Database],
        feed: ChangeFeed,
        idle_timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._database = database
        self._feed = feed
        self._profile_repo = ProfileRepository(database, feed)
        self._count_service = TaskCountService(database, feed)
        self._idle_timeout = (
            settings.notification_session_idle_seconds if idle_timeout_seconds is None else idle_timeout_seconds
        )
        self._clock = clock
        self._sessions: Dict[str, UserNotificationSession] = {}
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def session_for(self, user_id: str) -> UserNotificationSession:
        self.evict_idle()
        with self._lock:
            self._last_seen[user_id] = self._clock()
            session = self._sessions.get(user_id)
            if session is not None:
                return session

            user = self._profile_repo.get_profile(user_id) or Profile(id=user_id)
            popups = PopupMediator()
            notifier = AssignmentNotifier(user, self._feed, popups, database=self._database)
            watcher = TaskCountWatcher(user_id, self._feed, self._count_service)
            session = UserNotificationSession(user=user, popups=popups, notifier=notifier, watcher=watcher)
            self._sessions[user_id] = session

        notifier.start()
        watcher.start()
        logger.info(f"Notification session opened for {user_id}", extra={"user_id": user_id})
        return session

    def evict_idle(self) -> List[str]:
        """Close sessions not used within the idle timeout; returns their user ids"""
        cutoff = self._clock() - self._idle_timeout
        with self._lock:
            idle = [user_id for user_id, seen in self._last_seen.items() if seen <= cutoff]
            sessions = [self._sessions.pop(user_id, None) for user_id in idle]
            for user_id in idle:
                del self._last_seen[user_id]

        for user_id, session in zip(idle, sessions):
            if session is not None:
                session.close()
                logger.info(f"Notification session expired for {user_id}", extra={"user_id": user_id})
        return idle

    def close_session(self, user_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(user_id, None)
            self._last_seen.pop(user_id, None)
        if session is None:
            return False
        session.close()
        logger.info(f"Notification session closed for {user_id}", extra={"user_id": user_id})
        return True

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def close(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            self._last_seen.clear()
        for session in sessions:
            session.close()
