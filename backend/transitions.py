"""Zone transition detection for incoming location reports.

A report moves a user's stored zone status forward and, when the status flips
between two definite values, appends an enter/exit alert. Reports without zone
information are stored as UNKNOWN and never alert, and neither does the first
report for a user.
"""
import logging
import math
from datetime import datetime
from typing import NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Alert, AlertType, User, UserLocation, UserRole, ZoneStatus
import util
from util import user_lock, within_zone

logger = logging.getLogger(__name__)


# --------------------------------------------------
# ERRORS
# --------------------------------------------------
class TrackingError(Exception):
    status_code = 500


class InvalidInput(TrackingError):
    status_code = 400


class NotFound(TrackingError):
    status_code = 404


class Forbidden(TrackingError):
    status_code = 403


class StorageFailure(TrackingError):
    status_code = 500


class ReportResult(NamedTuple):
    ignored: bool
    zone_status: Optional[ZoneStatus] = None
    alert_type: Optional[AlertType] = None


# --------------------------------------------------
# INPUT CHECKS
# --------------------------------------------------
def _check_user_id(user_id):
    if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
        raise InvalidInput("Invalid user id")


def _check_coordinate(value, name: str, limit: float):
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidInput(f"Invalid {name}")
    if not -limit <= value <= limit:
        raise InvalidInput(f"{name.capitalize()} must be between -{limit:g} and {limit:g}")


# --------------------------------------------------
# EVALUATOR
# --------------------------------------------------
def evaluate_transition(previous: ZoneStatus, current: ZoneStatus):
    """Return ``(status_to_store, alert_type_or_None)``.

    An alert needs a definite previous status and a definite, different
    current one.
    """
    if not current.is_known or not previous.is_known or previous is current:
        return current, None
    if current is ZoneStatus.INSIDE:
        return current, AlertType.ENTER
    return current, AlertType.EXIT


def resolve_zone_status(user: User, latitude: float, longitude: float,
                        inside_zone: Optional[bool], source: Optional[str] = None) -> ZoneStatus:
    source = source or util.ZONE_STATUS_SOURCE
    if source == "server":
        if not user.has_zone:
            return ZoneStatus.UNKNOWN
        return ZoneStatus.from_flag(
            within_zone(user.zone_center_lat, user.zone_center_lng, user.zone_radius_m, latitude, longitude)
        )
    return ZoneStatus.from_flag(inside_zone)


# ----------------------------------------------------------
# REPORT LOCATION
# ----------------------------------------------------------
def report_location(db: Session, user_id: int, latitude: float, longitude: float,
                    inside_zone: Optional[bool] = None, zone_source: Optional[str] = None) -> ReportResult:
    _check_user_id(user_id)
    _check_coordinate(latitude, "latitude", 90.0)
    _check_coordinate(longitude, "longitude", 180.0)
    if inside_zone is not None and not isinstance(inside_zone, bool):
        raise InvalidInput("Invalid insideZone")

    # Unknown ids and admins are turned away before a lock entry exists for them
    try:
        user = db.query(User).filter(User.id == user_id).first()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Storage error while looking up user {user_id}: {exc}", exc_info=True)
        raise StorageFailure("Error updating location") from exc

    if not user:
        db.rollback()
        logger.warning(f"Location report for unknown user {user_id}")
        raise NotFound("User not found")

    if user.role == UserRole.ADMIN:
        db.rollback()
        logger.info(f"Ignoring location report for admin user {user_id}")
        return ReportResult(ignored=True)

    with user_lock(user_id):
        try:
            # Row lock on the user serializes concurrent reports across workers
            user = (
                db.query(User)
                .filter(User.id == user_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if not user:
                raise NotFound("User not found")

            location = (
                db.query(UserLocation)
                .filter(UserLocation.user_id == user_id)
                .populate_existing()
                .first()
            )
            previous = location.zone_status if location else ZoneStatus.UNKNOWN

            current = resolve_zone_status(user, latitude, longitude, inside_zone, zone_source)
            status, alert_type = evaluate_transition(previous, current)

            now = datetime.utcnow()
            if location is None:
                location = UserLocation(user_id=user_id)
                db.add(location)
            location.latitude = float(latitude)
            location.longitude = float(longitude)
            location.zone_status = status
            location.updated_at = now

            if alert_type is not None:
                db.add(Alert(
                    user_id=user_id,
                    alert_type=alert_type,
                    latitude=float(latitude),
                    longitude=float(longitude),
                    occurred_at=now,
                ))

            # Location and alert go in together or not at all
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Storage error while recording location for user {user_id}: {exc}", exc_info=True)
            raise StorageFailure("Error updating location") from exc
        except Exception:
            db.rollback()
            raise

    if alert_type is not None:
        logger.info(f"🚨 User {user_id} {alert_type.value} zone at ({latitude}, {longitude})")
    logger.debug(f"Location stored for user {user_id}: {previous.value} -> {status.value}")
    return ReportResult(ignored=False, zone_status=status, alert_type=alert_type)


# ----------------------------------------------------------
# EXPLICIT ALERT
# ----------------------------------------------------------
def record_alert(db: Session, user_id: int, alert_type, latitude: Optional[float] = None,
                 longitude: Optional[float] = None) -> Alert:
    """Append an alert that did not come from a location report."""
    _check_user_id(user_id)
    try:
        kind = AlertType(alert_type)
    except ValueError:
        raise InvalidInput("Invalid alert type")
    if latitude is not None:
        _check_coordinate(latitude, "latitude", 90.0)
    if longitude is not None:
        _check_coordinate(longitude, "longitude", 180.0)

    try:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFound("User not found")
        if user.role == UserRole.ADMIN:
            # Admins are never tracked, so they never get alerts either
            raise Forbidden("Admin users are not tracked")

        alert = Alert(
            user_id=user_id,
            alert_type=kind,
            latitude=float(latitude) if latitude is not None else None,
            longitude=float(longitude) if longitude is not None else None,
            occurred_at=datetime.utcnow(),
        )
        db.add(alert)
        db.commit()
        db.refresh(alert)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Storage error while creating alert for user {user_id}: {exc}", exc_info=True)
        raise StorageFailure("Error creating alert") from exc
    except Exception:
        db.rollback()
        raise

    logger.info(f"Alert {alert.id} ({kind.value}) recorded for user {user_id}")
    return alert
