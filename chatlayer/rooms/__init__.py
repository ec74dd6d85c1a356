"""Rooms and their lifecycle.

A room groups several realtime features (messages, presence, typing,
reactions, occupancy), each on its own channel, and exposes a single status
for all of them.
"""

from chatlayer.rooms.contributor import Contributor, FeatureContributor
from chatlayer.rooms.discontinuity import DiscontinuityBuffer
from chatlayer.rooms.features import (
    MessagesFeature,
    OccupancyFeature,
    PresenceFeature,
    ReactionsFeature,
    TypingFeature,
    channel_name,
)
from chatlayer.rooms.lifecycle import RoomLifecycleManager
from chatlayer.rooms.mutex import OperationPrecedence, PriorityMutex
from chatlayer.rooms.registry import Rooms
from chatlayer.rooms.room import Room
from chatlayer.rooms.status import RoomStatus, RoomStatusChange, RoomStatusHolder
from chatlayer.rooms.transient import TransientFaultTracker

__all__ = [
    "Contributor",
    "FeatureContributor",
    "DiscontinuityBuffer",
    "MessagesFeature",
    "PresenceFeature",
    "TypingFeature",
    "ReactionsFeature",
    "OccupancyFeature",
    "channel_name",
    "RoomLifecycleManager",
    "OperationPrecedence",
    "PriorityMutex",
    "Room",
    "Rooms",
    "RoomStatus",
    "RoomStatusChange",
    "RoomStatusHolder",
    "TransientFaultTracker",
]
