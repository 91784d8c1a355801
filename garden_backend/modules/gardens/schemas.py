from pydantic import BaseModel
from typing import List


class PlantPlacementIn(BaseModel):
    """Placement as the planner UI sends it; ``id`` is the plant type."""
    id: str
    x_value: float
    y_value: float


class PlantPlacement(BaseModel):
    plant_id: str
    x_value: float
    y_value: float


class GardenCreate(BaseModel):
    name: str
    is_indoor: bool
    length: float
    width: float
    region: int  # 0-7; not range checked


class SavePlantsRequest(BaseModel):
    plants: List[PlantPlacementIn]


class Garden(BaseModel):
    id: str
    name: str
    is_indoor: bool
    length: float
    width: float
    region: int
    timestamp: int  # creation time, ms since epoch
    plants: List[PlantPlacement] = []

    class Config:
        from_attributes = True


class GardenCreatedResponse(BaseModel):
    id: str
