from .enums import (
    AccessLevel,
    AccessRequestRole,
    AccessRequestStatus,
    EntityKind,
    EntityType,
    EventInvitationStatus,
    InvitationStatus,
    ParticipantKind,
    SystemRole,
    Zone,
)
from .user import User
from .entity import Entity
from .festival import Festival
from .event import Event
from .persona import Persona
from .team_membership import TeamMembership
from .persona_binding import PersonaBinding
from .invitation import Invitation
from .event_invitation import EventInvitation
from .access_request import AccessRequest
from .zone_assignment import EventParticipant, FestivalParticipant

__all__ = [
    "AccessLevel",
    "AccessRequestRole",
    "AccessRequestStatus",
    "EntityKind",
    "EntityType",
    "EventInvitationStatus",
    "InvitationStatus",
    "ParticipantKind",
    "SystemRole",
    "Zone",
    "User",
    "Entity",
    "Festival",
    "Event",
    "Persona",
    "TeamMembership",
    "PersonaBinding",
    "Invitation",
    "EventInvitation",
    "AccessRequest",
    "EventParticipant",
    "FestivalParticipant",
]
