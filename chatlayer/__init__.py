"""
chatlayer - room lifecycle for realtime chat
"""

__version__ = "0.1.0"

from chatlayer.errors import ChatError, ErrorCode
from chatlayer.rooms import Room, Rooms, RoomStatus, RoomStatusChange

__all__ = [
    "__version__",
    "ChatError",
    "ErrorCode",
    "Room",
    "Rooms",
    "RoomStatus",
    "RoomStatusChange",
]
