from fastapi import APIRouter, Depends
from garden_backend.core.dependencies import get_garden_repository
from garden_backend.modules.gardens.schemas import (
    Garden, GardenCreate, GardenCreatedResponse, PlantPlacement, SavePlantsRequest
)
from garden_backend.modules.gardens.service import GardenRepository
from typing import List

router = APIRouter(prefix="/gardens", tags=["gardens"])


@router.get("", response_model=List[Garden])
async def list_gardens(repository: GardenRepository = Depends(get_garden_repository)):
    """List the current user's gardens"""
    return repository.get_user_gardens()


@router.post("", response_model=GardenCreatedResponse, status_code=201)
async def create_garden(
    garden_data: GardenCreate,
    repository: GardenRepository = Depends(get_garden_repository)
):
    """Create an empty garden for the current user"""
    garden_id = repository.create_garden(
        garden_data.name,
        garden_data.is_indoor,
        garden_data.length,
        garden_data.width,
        garden_data.region
    )
    return GardenCreatedResponse(id=garden_id)


@router.get("/{garden_id}", response_model=Garden)
async def get_garden(
    garden_id: str,
    repository: GardenRepository = Depends(get_garden_repository)
):
    """Get garden by ID"""
    return repository.get_garden(garden_id)


@router.delete("/{garden_id}", status_code=204)
async def delete_garden(
    garden_id: str,
    repository: GardenRepository = Depends(get_garden_repository)
):
    """Delete a garden and unlink it from the current user"""
    repository.delete_garden(garden_id)
    return None


@router.put("/{garden_id}/plants", response_model=List[PlantPlacement])
async def save_plants(
    garden_id: str,
    request: SavePlantsRequest,
    repository: GardenRepository = Depends(get_garden_repository)
):
    """Overwrite the garden's plants with the submitted layout"""
    return repository.save_plants_to_garden(request.plants, garden_id)
