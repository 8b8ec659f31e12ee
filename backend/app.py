# app.py
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

# utils
from util import get_db, engine, LOG_LEVEL, CORS_ORIGINS

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
)
logger = logging.getLogger(__name__)


# models & schemas
from models import Base
from schemas import LocationReport, AlertCreate
from transitions import report_location, record_alert, TrackingError

app = FastAPI(title="Geofence Tracking Backend")

# --------------------------------------------------
# VALIDATION ERROR HANDLER
# --------------------------------------------------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = await request.body()
    logger.error(f"Validation error at {request.url}")
    logger.error(f"Validation errors: {exc.errors()}")
    logger.error(f"Request body: {body}")
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid request", "detail": jsonable_encoder(exc.errors())}
    )

# --------------------------------------------------
# TRACKING ERROR HANDLER
# --------------------------------------------------
@app.exception_handler(TrackingError)
async def tracking_exception_handler(request: Request, exc: TrackingError):
    if exc.status_code >= 500:
        logger.error(f"Request to {request.url} failed: {exc}")
    else:
        logger.warning(f"Request to {request.url} rejected ({exc.status_code}): {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc)}
    )

# --------------------------------------------------
# CORS CONFIGURATION
# --------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------
# CREATE TABLES ON STARTUP (SAFE MODE)
# ---------------------------------------------
@app.on_event("startup")
def startup():
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("✔ Tables checked — existing tables were NOT modified.")
    except Exception as e:
        logger.error(f"❌ Error checking/creating tables: {str(e)}")


# ---------------------------------------------
# ROOT
# ---------------------------------------------
@app.get("/")
def root():
    return {"message": "Geofence tracking backend running"}


# ----------------------------------------------------------
# LOCATION REPORT (mobile app) + ZONE TRANSITION ALERTS
# ----------------------------------------------------------
@app.post("/api/user-location")
def update_user_location(data: LocationReport, db: Session = Depends(get_db)):
    try:
        logger.info(
            f"Location report received - user_id: {data.user_id}, lat: {data.latitude}, "
            f"lng: {data.longitude}, inside_zone: {data.inside_zone}"
        )
        result = report_location(db, data.user_id, data.latitude, data.longitude, data.inside_zone)

        if result.ignored:
            return {"success": True, "ignored": True}
        return {"success": True}

    except TrackingError:
        raise
    except Exception as e:
        logger.error(f"Error in update_user_location: {str(e)}", exc_info=True)
        db.rollback()
        raise TrackingError("Error updating location") from e


# ----------------------------------------------------------
# ALERT CREATE (explicit)
# ----------------------------------------------------------
@app.post("/api/alerts")
def create_alert(data: AlertCreate, db: Session = Depends(get_db)):
    try:
        alert = record_alert(db, data.user_id, data.alert_type, data.latitude, data.longitude)
        return {"success": True, "id": alert.id}

    except TrackingError:
        raise
    except Exception as e:
        logger.error(f"Error in create_alert: {str(e)}", exc_info=True)
        db.rollback()
        raise TrackingError("Error creating alert") from e
