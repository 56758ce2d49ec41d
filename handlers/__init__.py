from .auth     import auth_router
from .feed     import feed_router
from .comments import comments_router
from .coaches  import coaches_router
from .profile  import profile_router
from .videos   import videos_router
from .chat     import chat_router
from .help     import help_router

__all__ = [
    "auth_router", "feed_router", "comments_router", "coaches_router",
    "profile_router", "videos_router", "chat_router", "help_router",
]
