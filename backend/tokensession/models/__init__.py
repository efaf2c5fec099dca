from tokensession.models.device_session import DeviceSession
from tokensession.models.user import User

__all__ = [
    "DeviceSession",
    "User",
]
