"""Mission-related Pydantic schemas for API responses."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MissionRecord(BaseModel):
    """A collection mission as stored in the mission table.

    Attributes absent from a stored item take their zero value. The
    collection window ordering is owned by the data layer and not checked
    here.
    """

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "examples": [
                {
                    "id": "m-0001",
                    "name": "Conjunction survey 1",
                    "status": "scheduled",
                    "priority": 2,
                    "target_satellite_id": "25544",
                    "observer_satellite_id": "48274",
                    "tca": 1767225600,
                    "min_range_km": 12.5,
                    "collection_window_start": 1767225480,
                    "collection_window_end": 1767225720,
                    "collection_type": "optical",
                    "pointing_target": "target",
                    "image_ids": ["img-0001", "img-0002"]
                }
            ]
        }
    )

    id: str = Field(..., min_length=1, description="Unique mission identifier")
    name: str = Field(default="", description="Human readable mission name")
    status: str = Field(default="", description="Mission lifecycle status")
    priority: int = Field(default=0, description="Scheduling priority")
    target_satellite_id: str = Field(default="", description="Satellite being imaged")
    observer_satellite_id: str = Field(default="", description="Satellite collecting imagery")
    tca: int = Field(default=0, description="Time of closest approach (epoch seconds)")
    min_range_km: float = Field(default=0.0, description="Minimum range at closest approach in km")
    collection_window_start: int = Field(default=0, description="Collection window start (epoch seconds)")
    collection_window_end: int = Field(default=0, description="Collection window end (epoch seconds)")
    collection_type: str = Field(default="", description="Collection type tag")
    pointing_target: str = Field(default="", description="Pointing target tag")
    image_ids: List[str] = Field(default_factory=list, description="Ordered image identifiers")


class MissionListResponse(BaseModel):
    """One page of missions plus the token for the next page, if any."""

    model_config = ConfigDict(populate_by_name=True)

    missions: List[MissionRecord] = Field(..., description="Missions on this page")
    next_token: Optional[str] = Field(
        default=None,
        alias="nextToken",
        description="Opaque token for the next page; omitted on the last page"
    )
