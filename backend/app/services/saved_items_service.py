"""
Saved artifacts owned by a user: cars, the latest performance calculation,
build plans and generated images. Every query is scoped to the owner's email.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from ..core.errors import NotFoundError, ValidationError
from ..core.supabase_client import supabase_client
from ..schemas.saved import (
    SavedBuildPlan,
    SavedBuildPlanCreate,
    SavedCar,
    SavedCarCreate,
    SavedCarUpdate,
    SavedImage,
    SavedImageCreate,
    SavedPerformance,
    SavedPerformanceUpsert,
)

logger = logging.getLogger(__name__)

MAX_SAVED_IMAGES = 3


class SavedItemsService:

    def __init__(self):
        self._supabase = None

    @property
    def supabase(self):
        if self._supabase is None:
            self._supabase = supabase_client.service_client
        return self._supabase

    @supabase.setter
    def supabase(self, client):
        self._supabase = client

    # ============================================================================
    # Cars
    # ============================================================================

    def list_cars(self, email: str) -> List[SavedCar]:
        result = (
            self.supabase.table("saved_cars")
            .select("*")
            .eq("user_email", email)
            .order("is_active", desc=True)
            .order("updated_at", desc=True)
            .execute()
        )
        return [SavedCar.model_validate(row) for row in result.data or []]

    def _deactivate_other_cars(self, email: str, car_id: str) -> None:
        (
            self.supabase.table("saved_cars")
            .update({"is_active": False})
            .eq("user_email", email)
            .neq("id", car_id)
            .execute()
        )

    def create_car(self, email: str, car: SavedCarCreate) -> SavedCar:
        row = car.model_dump(exclude={"set_as_active"})
        row.update({"user_email": email, "is_active": car.set_as_active})
        result = self.supabase.table("saved_cars").insert(row).execute()
        saved = SavedCar.model_validate(result.data[0])

        # The others are deactivated only after the new row exists
        if car.set_as_active:
            self._deactivate_other_cars(email, saved.id)
        logger.info(f"Saved car '{car.name}' for {email}")
        return saved

    def update_car(self, email: str, car_id: str, update: SavedCarUpdate) -> SavedCar:
        changes = update.model_dump(exclude_unset=True, exclude={"set_as_active"})
        if update.set_as_active is not None:
            changes["is_active"] = update.set_as_active
        changes["updated_at"] = datetime.now(timezone.utc).isoformat()

        result = (
            self.supabase.table("saved_cars")
            .update(changes)
            .eq("id", car_id)
            .eq("user_email", email)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Car not found")

        if update.set_as_active:
            self._deactivate_other_cars(email, car_id)
        return SavedCar.model_validate(result.data[0])

    def delete_car(self, email: str, car_id: str) -> None:
        result = self.supabase.table("saved_cars").delete().eq("id", car_id).eq("user_email", email).execute()
        if not result.data:
            raise NotFoundError("Car not found")

    # ============================================================================
    # Performance (one row per user)
    # ============================================================================

    def get_performance(self, email: str) -> Optional[SavedPerformance]:
        result = (
            self.supabase.table("saved_performance")
            .select("*")
            .eq("user_email", email)
            .limit(1)
            .execute()
        )
        rows = result.data or []
        return SavedPerformance.model_validate(rows[0]) if rows else None

    def save_performance(self, email: str, item: SavedPerformanceUpsert) -> SavedPerformance:
        result = self.supabase.table("saved_performance").upsert(
            {
                "user_email": email,
                "car_input": item.car_input,
                "results": item.results,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict="user_email",
        ).execute()
        return SavedPerformance.model_validate(result.data[0])

    def delete_performance(self, email: str) -> None:
        result = self.supabase.table("saved_performance").delete().eq("user_email", email).execute()
        if not result.data:
            raise NotFoundError("No saved performance calculation")

    # ============================================================================
    # Build plans
    # ============================================================================

    def list_build_plans(self, email: str) -> List[SavedBuildPlan]:
        result = (
            self.supabase.table("saved_build_plans")
            .select("*")
            .eq("user_email", email)
            .order("created_at", desc=True)
            .execute()
        )
        return [SavedBuildPlan.model_validate(row) for row in result.data or []]

    def create_build_plan(self, email: str, item: SavedBuildPlanCreate) -> SavedBuildPlan:
        result = self.supabase.table("saved_build_plans").insert({
            "user_email": email,
            "vehicle_spec": item.vehicle_spec,
            "plan": item.plan,
        }).execute()
        return SavedBuildPlan.model_validate(result.data[0])

    def delete_build_plan(self, email: str, plan_id: str) -> None:
        result = (
            self.supabase.table("saved_build_plans")
            .delete()
            .eq("id", plan_id)
            .eq("user_email", email)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Build plan not found")

    # ============================================================================
    # Images
    # ============================================================================

    def list_images(self, email: str) -> List[SavedImage]:
        result = (
            self.supabase.table("saved_images")
            .select("*")
            .eq("user_email", email)
            .order("created_at", desc=True)
            .execute()
        )
        return [SavedImage.model_validate(row) for row in result.data or []]

    def create_image(self, email: str, item: SavedImageCreate) -> SavedImage:
        count_result = (
            self.supabase.table("saved_images")
            .select("id", count="exact")
            .eq("user_email", email)
            .execute()
        )
        current = count_result.count if count_result.count is not None else len(count_result.data or [])
        if current >= MAX_SAVED_IMAGES:
            raise ValidationError(
                f"Maximum of {MAX_SAVED_IMAGES} saved images reached. Delete one to save a new image."
            )

        result = self.supabase.table("saved_images").insert({
            "user_email": email,
            "image_url": item.image_url,
            "car_spec": item.car_spec,
            "prompt": item.prompt,
        }).execute()
        return SavedImage.model_validate(result.data[0])

    def delete_image(self, email: str, image_id: str) -> None:
        result = (
            self.supabase.table("saved_images")
            .delete()
            .eq("id", image_id)
            .eq("user_email", email)
            .execute()
        )
        if not result.data:
            raise NotFoundError("Image not found")


saved_items_service = SavedItemsService()