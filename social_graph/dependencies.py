from fastapi import Depends
from sqlalchemy.orm import Session

from social_graph.auth import StaticUserProvider, get_current_user_id
from social_graph.database import get_db, get_session_local
from social_graph.realtime import ChangeFeed
from social_graph.services.counter_sync import EngagementCounterSync
from social_graph.services.facade import SocialGraphFacade, connect_counter_feed
from social_graph.services.notifications import FriendRequestNotifier

# Process-wide collaborators, created lazily
_change_feed = None
_counter_sync = None
_notifier = None


def get_counter_sync() -> EngagementCounterSync:
    """Counter cache shared by every request in this process, fed by the change feed."""
    global _change_feed, _counter_sync
    if _counter_sync is None:
        session_factory = get_session_local()
        _counter_sync = EngagementCounterSync()
        _change_feed = ChangeFeed().attach(session_factory)
        connect_counter_feed(_change_feed, _counter_sync, session_factory)
    return _counter_sync


def get_notifier() -> FriendRequestNotifier:
    global _notifier
    if _notifier is None:
        _notifier = FriendRequestNotifier()
    return _notifier


async def get_facade(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> SocialGraphFacade:
    return SocialGraphFacade(
        db,
        StaticUserProvider(user_id),
        counters=get_counter_sync(),
        notifier=get_notifier(),
    )
