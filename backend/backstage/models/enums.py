import enum


class SystemRole(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    NONE = "NONE"


class EntityType(str, enum.Enum):
    VENUE = "venue"
    SOLO = "solo"
    BAND = "band"


class EntityKind(str, enum.Enum):
    HOST = "host"
    PROJECT = "project"


class AccessLevel(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"

    @property
    def rank(self) -> int:
        return _ACCESS_RANK[self]

    def at_least(self, other: "AccessLevel") -> bool:
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: "str | AccessLevel | None") -> "AccessLevel | None":
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


_ACCESS_RANK = {
    AccessLevel.VIEWER: 1,
    AccessLevel.EDITOR: 2,
    AccessLevel.ADMIN: 3,
    AccessLevel.OWNER: 4,
}

# owner is only ever granted at entity creation
INVITABLE_ACCESS = (AccessLevel.ADMIN, AccessLevel.EDITOR, AccessLevel.VIEWER)


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"
    DECLINED = "declined"
    # never stored: pending + past expires_at
    EXPIRED = "expired"


class Zone(str, enum.Enum):
    ON_STAGE = "on_stage"
    BACKSTAGE = "backstage"
    HOST = "host"


# zones a festival hands down to each of its events
INHERITED_ZONES = (Zone.HOST, Zone.BACKSTAGE)


class ParticipantKind(str, enum.Enum):
    PERSONA = "persona"
    ENTITY = "entity"

    @classmethod
    def parse(cls, value: str) -> "ParticipantKind | None":
        v = (value or "").strip().lower()
        if v == "project":
            v = "entity"
        try:
            return cls(v)
        except ValueError:
            return None


class EventInvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class AccessRequestStatus(str, enum.Enum):
    NEW = "new"
    APPROVED = "approved"
    REJECTED = "rejected"


class AccessRequestRole(str, enum.Enum):
    MUSICIAN = "musician"
    ORGANIZER = "organizer"
    TECHNICIAN = "technician"
    PHOTOGRAPHER = "photographer"
    BOOKING = "booking"
    OTHER = "other"
