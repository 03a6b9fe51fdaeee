# fleetadmin/reminders/assignment.py

from typing import Any, Iterable, List, Mapping, Optional

from fleetadmin.core.errors import ValidationError
from fleetadmin.core.store import is_numeric_reference
from fleetadmin.schemas.fleet import Vehicle


def canonical_user_id(value: Any, directory: Optional[Mapping[str, int]] = None) -> Optional[int]:
    """
    Normaliza un id de usuario a su forma numérica.
    - int / "12"       -> 12
    - documentId opaco -> id numérico vía `directory` (documentId -> id), o None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    if is_numeric_reference(text):
        return int(text)
    if directory:
        found = directory.get(text)
        return int(found) if found is not None else None
    return None


def aggregate(
    manual_user_ids: Iterable[Any],
    vehicle: Optional[Vehicle],
    directory: Optional[Mapping[str, int]] = None,
) -> List[int]:
    """
    manual ∪ responsables ∪ conductores, deduplicado por id numérico.
    Función pura: mismas entradas, mismo resultado (ordenado).
    """
    ids = set()
    for value in manual_user_ids or []:
        uid = canonical_user_id(value, directory)
        if uid is not None:
            ids.add(uid)
    if vehicle is not None:
        ids.update(int(i) for i in vehicle.responsable_ids)
        ids.update(int(i) for i in vehicle.assigned_driver_ids)
    return sorted(ids)


def aggregate_or_raise(
    manual_user_ids: Iterable[Any],
    vehicle: Optional[Vehicle],
    directory: Optional[Mapping[str, int]] = None,
) -> List[int]:
    ids = aggregate(manual_user_ids, vehicle, directory)
    if not ids:
        raise ValidationError("A reminder needs at least one recipient (assigned user, responsible or driver)")
    return ids
