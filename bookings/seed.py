from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass

from django.db import transaction

from .models import Room


@dataclass(frozen=True)
class RoomSeed:
    name: str
    location: str
    capacity: int
    description: str = ""

    def fields(self) -> dict:
        """Room column values; a seeded room is always bookable."""
        return {**asdict(self), "is_active": True}


DEFAULT_ROOMS: list[RoomSeed] = [
    RoomSeed(name="Alpha", location="Floor 1", capacity=4, description="Small huddle room."),
    RoomSeed(name="Bravo", location="Floor 1", capacity=6, description="Meeting room with a screen."),
    RoomSeed(name="Charlie", location="Floor 2", capacity=8, description="Meeting room with video conferencing."),
    RoomSeed(name="Delta", location="Floor 3", capacity=10, description="Board room."),
    RoomSeed(name="Echo", location="Floor 4", capacity=12, description="Training room with a projector."),
]


def seed_default_rooms(*, update_existing: bool = False) -> dict[str, int]:
    """
    Create the default rooms that are missing, matched by name.

    Rooms that already exist keep their edits unless `update_existing` is
    set, in which case they are reset to the defaults and reactivated.
    """
    counts = Counter(created=0, updated=0, skipped=0)

    with transaction.atomic():
        existing = Room.objects.select_for_update().in_bulk(
            [seed.name for seed in DEFAULT_ROOMS], field_name="name"
        )
        for seed in DEFAULT_ROOMS:
            room = existing.get(seed.name)
            if room is None:
                Room.objects.create(**seed.fields())
                counts["created"] += 1
            elif update_existing:
                for field, value in seed.fields().items():
                    setattr(room, field, value)
                room.save()
                counts["updated"] += 1
            else:
                counts["skipped"] += 1

    return dict(counts)
