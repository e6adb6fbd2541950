"""
Package slots and image assignments.

A package (e.g. "20 prints 10x15 + 1 free 13x18") is a list of slots, each
with a print format and a required image count.  Every image is assigned
to exactly one slot; the slot's format name is all the crop engine reads.
These helpers only validate and look things up; assignment state is owned
by the order service.
"""

from collections import Counter
from dataclasses import dataclass

from print_crop.models import Assignment


@dataclass(frozen=True)
class PackageSlot:
    slot_id: str
    format_name: str
    required_count: int
    is_gift: bool = False

    def describe(self) -> str:
        return f"Gift: {self.format_name}" if self.is_gift else f"Print {self.format_name}"

    def assignment(self) -> Assignment:
        return Assignment(slot_id=self.slot_id, format_name=self.format_name)


def default_slot(slots: list[PackageSlot]) -> PackageSlot | None:
    """The slot new images land in: the first regular (non-gift) slot."""
    return next((s for s in slots if not s.is_gift), None)


def can_assign(slots: list[PackageSlot], assignments: dict[str, Assignment], slot_id: str) -> bool:
    """True if *slot_id* exists and still has room for one more image."""
    slot = next((s for s in slots if s.slot_id == slot_id), None)
    if slot is None:
        return False
    used = sum(1 for a in assignments.values() if a.slot_id == slot_id)
    return used < slot.required_count


def validate_assignments(slots: list[PackageSlot], assignments: dict[str, Assignment]) -> list[str]:
    """
    Check image -> slot assignments against the package.

    *assignments* maps image id to Assignment.  Returns a list of error
    strings (empty means the package is complete).
    """
    errors: list[str] = []
    known = {s.slot_id for s in slots}
    counts = Counter(a.slot_id for a in assignments.values())

    for image_id, assignment in sorted(assignments.items()):
        if assignment.slot_id not in known:
            errors.append(f"Image {image_id}: assigned to unknown slot '{assignment.slot_id}'")

    for slot in slots:
        assigned = counts.get(slot.slot_id, 0)
        if assigned != slot.required_count:
            errors.append(
                f"{slot.describe()}: requires {slot.required_count} photo(s), "
                f"{assigned} assigned"
            )

    return errors
