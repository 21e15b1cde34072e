"""Driver / unit registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taxidispatch.config import settings
from taxidispatch.domain.entities import unit_is_active
from taxidispatch.domain.exceptions import UnitNotFound, ValidationFailed
from taxidispatch.infrastructure.models import DriverModel
from taxidispatch.infrastructure.repositories import DriverRepository

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "name",
    "plate",
    "color",
    "phone",
    "photo",
    "token",
    "fcm_token",
    "device_token",
)


def validate_photo_url(url: str, prefixes: Optional[tuple[str, ...]] = None) -> str:
    """Accept only a local preview or a URL on the permanent photo host."""
    url = (url or "").strip()
    if not url:
        return ""
    prefixes = prefixes or settings.photo_url_prefixes
    if not url.startswith(tuple(prefixes)):
        raise ValidationFailed(f"Photo URL not accepted: {url}")
    return url


@dataclass
class DriverDraft:
    unit: str
    name: str
    plate: str = ""
    color: str = ""
    phone: str = ""
    photo: str = ""
    estatus: Any = True
    token: Optional[str] = None
    fcm_token: Optional[str] = None
    device_token: Optional[str] = None


class DriverService:
    def __init__(self, session: AsyncSession):
        self.drivers = DriverRepository(session)

    async def create(self, draft: DriverDraft) -> DriverModel:
        unit = (draft.unit or "").strip()
        if not unit:
            raise ValidationFailed("Unit number is required")
        if not (draft.name or "").strip():
            raise ValidationFailed("Driver name is required")
        if await self.drivers.get_by_unit(unit):
            raise ValidationFailed(f"Unit {unit} is already registered")

        driver = await self.drivers.create(
            DriverModel(
                unit=unit,
                name=draft.name.strip(),
                plate=draft.plate.strip().upper(),
                color=draft.color,
                phone=draft.phone,
                photo=validate_photo_url(draft.photo),
                estatus=unit_is_active(draft.estatus),
                token=draft.token,
                fcm_token=draft.fcm_token,
                device_token=draft.device_token,
            )
        )
        logger.info("Driver registered for unit %s", unit)
        return driver

    async def list(self) -> list[DriverModel]:
        return await self.drivers.list_all()

    async def get(self, unit: str) -> DriverModel:
        driver = await self.drivers.get_by_unit(unit)
        if driver is None:
            raise UnitNotFound(unit)
        return driver

    async def update(self, unit: str, changes: dict[str, Any]) -> DriverModel:
        driver = await self.get(unit)
        for name, value in changes.items():
            if name not in EDITABLE_FIELDS:
                raise ValidationFailed(f"Field {name} cannot be edited")
            if name == "photo":
                value = validate_photo_url(value)
            setattr(driver, name, value)
        return driver

    async def set_status(
        self, unit: str, estatus: Any, operator: str
    ) -> tuple[DriverModel, bool]:
        """Set ``estatus``; returns the driver and whether it actually changed."""
        driver = await self.get(unit)
        previous = bool(driver.estatus)
        current = unit_is_active(estatus)
        if previous == current:
            return driver, False
        driver.estatus = current
        await self.drivers.log_status_change(unit, previous, current, operator)
        logger.info(
            "Unit %s set %s by %s", unit, "active" if current else "inactive", operator
        )
        return driver, True

    async def history(self, unit: str):
        await self.get(unit)
        return await self.drivers.status_history(unit)
