import logging
import time
import uuid
from typing import Any, Iterable, List, Optional, Union

import httpx
from supabase import Client

from garden_backend.core.exceptions import AuthError, GardenBackendError, NotFoundError, TransientNetworkError
from garden_backend.modules.gardens.schemas import Garden, PlantPlacement, PlantPlacementIn
from garden_backend.modules.session.schemas import Session

logger = logging.getLogger(__name__)

MIN_REGION = 0
MAX_REGION = 7


def parse_garden_id(garden_id: str) -> Optional[str]:
    """Canonical form of a garden id, or None when it cannot name a garden row."""
    try:
        return str(uuid.UUID(str(garden_id)))
    except ValueError:
        return None


class GardenRepository:
    """Garden CRUD for the user identified by ``session``.

    Garden rows live in ``gardens``; the user's ``users.gardens`` list links
    them to their owner. ``supabase`` must carry the session's access token
    so row level security sees the user's profile. Errors are not caught
    here and reach the caller.
    """

    def __init__(self, supabase: Client, session: Optional[Session]):
        self.supabase = supabase
        self.session = session

    def create_garden(self, name: str, is_indoor: bool, length: float, width: float, region: int) -> str:
        """Create an empty garden and link it to the user. Returns the new garden id."""
        session = self._require_session()
        if not MIN_REGION <= region <= MAX_REGION:
            logger.warning("Garden %r created with region %s outside %s-%s", name, region, MIN_REGION, MAX_REGION)

        result = self._execute(self.supabase.table("gardens").insert({
            "name": name,
            "is_indoor": is_indoor,
            "length": length,
            "width": width,
            "region": region,
            "plants": [],
            "timestamp": int(time.time() * 1000),
        }))
        if not result.data:
            raise GardenBackendError("Failed to create garden")
        garden_id = str(result.data[0]["id"])

        # add_user_garden raises when the profile row is missing or hidden
        try:
            self._execute(self.supabase.rpc("add_user_garden", {
                "p_user_id": session.profile_ref,
                "p_garden_id": garden_id,
            }))
        except Exception:
            logger.error("Linking garden %s to user %s failed, removing the garden", garden_id, session.user_id)
            self._execute(self.supabase.table("gardens").delete().eq("id", garden_id))
            raise

        logger.info("Created garden %s for user %s", garden_id, session.user_id)
        return garden_id

    def delete_garden(self, garden_id: str) -> None:
        """Delete the garden row, then unlink it from the user.

        Unlinking runs even when the row is already gone, so calling this again
        clears a reference left behind by an interrupted delete.
        """
        session = self._require_session()
        key = parse_garden_id(garden_id)
        deleted = []
        if key is not None:
            deleted = self._execute(self.supabase.table("gardens").delete().eq("id", key)).data
        self._execute(self.supabase.rpc("remove_user_garden", {
            "p_user_id": session.profile_ref,
            "p_garden_id": garden_id,
        }))
        if not deleted:
            raise NotFoundError(f"Garden {garden_id} not found")
        logger.info("Deleted garden %s for user %s", garden_id, session.user_id)

    def save_plants_to_garden(self, plants: Iterable[Union[PlantPlacementIn, dict]], garden_id: str) -> List[PlantPlacement]:
        """Replace the garden's plants with ``plants``.

        This overwrites everything stored before. Call it on an explicit save,
        not on every drag in the planner.
        """
        self._require_session()
        key = self._require_garden_key(garden_id)
        placements = []
        for plant in plants:
            if not isinstance(plant, PlantPlacementIn):
                plant = PlantPlacementIn.model_validate(plant)
            placements.append(PlantPlacement(plant_id=plant.id, x_value=plant.x_value, y_value=plant.y_value))

        result = self._execute(
            self.supabase.table("gardens")
            .update({"plants": [p.model_dump() for p in placements]})
            .eq("id", key)
        )
        if not result.data:
            raise NotFoundError(f"Garden {garden_id} not found")
        return placements

    def get_user_gardens(self) -> List[Garden]:
        """All of the user's gardens in the order they are listed on the profile."""
        session = self._require_session()
        profile = self._execute(
            self.supabase.table("users")
            .select("gardens")
            .eq("id", session.profile_ref)
            .maybe_single()
        )
        if not profile or not profile.data:
            raise NotFoundError(f"Profile for user {session.user_id} not found")

        garden_ids = [str(g) for g in profile.data.get("gardens") or []]
        keys = {garden_id: parse_garden_id(garden_id) for garden_id in garden_ids}
        valid_keys = [key for key in keys.values() if key is not None]

        rows = {}
        if valid_keys:
            result = self._execute(self.supabase.table("gardens").select("*").in_("id", valid_keys))
            rows = {str(row["id"]): row for row in result.data or []}
        gardens = []
        for garden_id in garden_ids:
            row = rows.get(keys[garden_id])
            if row is None:
                logger.warning("User %s lists missing garden %s", session.user_id, garden_id)
                continue
            gardens.append(self._to_garden(row))
        return gardens

    def get_garden(self, garden_id: str) -> Garden:
        key = self._require_garden_key(garden_id)
        result = self._execute(
            self.supabase.table("gardens")
            .select("*")
            .eq("id", key)
            .maybe_single()
        )
        if not result or not result.data:
            raise NotFoundError(f"Garden {garden_id} not found")
        return self._to_garden(result.data)

    def _require_session(self) -> Session:
        if self.session is None:
            raise AuthError("no current user", category="no-current-user")
        return self.session

    @staticmethod
    def _require_garden_key(garden_id: str) -> str:
        key = parse_garden_id(garden_id)
        if key is None:
            raise NotFoundError(f"Garden {garden_id} not found")
        return key

    @staticmethod
    def _to_garden(row: dict) -> Garden:
        return Garden(**{**row, "id": str(row["id"])})

    @staticmethod
    def _execute(query) -> Any:
        try:
            return query.execute()
        except httpx.TransportError as e:
            raise TransientNetworkError(f"Garden store unreachable: {str(e)}") from e
