from .base import Base  # noqa: F401
from .user import AuthProvider, User, UserStatus  # noqa: F401
from .refresh_token import RefreshToken  # noqa: F401
