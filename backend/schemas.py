from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from models import AlertType


# --------------------------------------------------
# 1️⃣ LOCATION REPORT (from the mobile app)
# --------------------------------------------------
class LocationReport(BaseModel):
    # The app sends camelCase; snake_case is accepted too.
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(..., alias="userId", gt=0, strict=True)
    latitude: float = Field(..., strict=True, allow_inf_nan=False, ge=-90, le=90)
    longitude: float = Field(..., strict=True, allow_inf_nan=False, ge=-180, le=180)
    # None / missing means the app had no opinion
    inside_zone: Optional[bool] = Field(None, alias="insideZone", strict=True)


# --------------------------------------------------
# 2️⃣ ALERT (explicit, outside of a location report)
# --------------------------------------------------
class AlertCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(..., alias="userId", gt=0, strict=True)
    alert_type: AlertType = Field(..., alias="alertType")
    latitude: Optional[float] = Field(None, strict=True, allow_inf_nan=False, ge=-90, le=90)
    longitude: Optional[float] = Field(None, strict=True, allow_inf_nan=False, ge=-180, le=180)
