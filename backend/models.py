import enum
from datetime import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Enum,
    ForeignKey,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import text
from sqlalchemy.dialects.postgresql import TIMESTAMP

Base = declarative_base()


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


class ZoneStatus(str, enum.Enum):
    """Last known inside/outside state of a user.

    UNKNOWN is a real value, not a missing one: it is stored when a report
    carried no zone information, and it never compares equal to OUTSIDE.
    """

    INSIDE = "inside"
    OUTSIDE = "outside"
    UNKNOWN = "unknown"

    @classmethod
    def from_flag(cls, flag):
        if flag is None:
            return cls.UNKNOWN
        return cls.INSIDE if flag else cls.OUTSIDE

    @property
    def is_known(self) -> bool:
        return self is not ZoneStatus.UNKNOWN


class AlertType(str, enum.Enum):
    ENTER = "enter"
    EXIT = "exit"


# --------------------------------------------------
# 1️⃣ USERS (admins and tracked users)
# --------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, nullable=False)
    role = Column(
        Enum(UserRole, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=UserRole.USER,
    )
    # Zone (circle). Only usable when all three are set.
    zone_center_lat = Column(Float, nullable=True)
    zone_center_lng = Column(Float, nullable=True)
    zone_radius_m = Column(Float, nullable=True)
    created_at = Column(
        TIMESTAMP,
        server_default=text("CURRENT_TIMESTAMP")
    )

    @property
    def has_zone(self) -> bool:
        return (
            self.zone_center_lat is not None
            and self.zone_center_lng is not None
            and self.zone_radius_m is not None
        )


# --------------------------------------------------
# 2️⃣ USER LOCATIONS (last known position, one row per user)
# --------------------------------------------------
class UserLocation(Base):
    __tablename__ = "user_locations"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    zone_status = Column(
        Enum(ZoneStatus, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=ZoneStatus.UNKNOWN,
    )
    updated_at = Column(
        TIMESTAMP,
        server_default=text("CURRENT_TIMESTAMP"),
        default=datetime.utcnow,
        nullable=False,
    )


# --------------------------------------------------
# 3️⃣ ALERTS (append-only enter/exit events)
# --------------------------------------------------
class Alert(Base):
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    alert_type = Column(
        Enum(AlertType, native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
    )
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    occurred_at = Column(
        TIMESTAMP,
        server_default=text("CURRENT_TIMESTAMP"),
        default=datetime.utcnow,
        nullable=False,
    )
