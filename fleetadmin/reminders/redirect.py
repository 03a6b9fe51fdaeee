# fleetadmin/reminders/redirect.py

import logging
from typing import Optional

from fleetadmin.core.errors import UnsupportedQueryError
from fleetadmin.core.store import RecordStore, is_numeric_reference
from fleetadmin.schemas.reminders import Reminder

logger = logging.getLogger(__name__)


class OccurrenceRedirector:
    """
    Una ocurrencia generada (tags.parentReminderId) nunca es el blanco de una mutación:
    update/delete/toggle se redirigen al recordatorio padre.
    Si el padre no se puede localizar, la ocurrencia se trata como recordatorio
    independiente (política explícita, se registra en WARNING).
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def redirect_target(self, record: Reminder) -> Reminder:
        parent_ref = record.parent_reminder_id
        if parent_ref is None:
            return record

        parent = self._parent_by_id(parent_ref) or self._parent_by_any_id(parent_ref)
        if parent is not None and parent.id != record.id:
            logger.info("redirect: occurrence %s -> parent %s", record.reference, parent.reference)
            return parent

        logger.warning(
            "redirect: parent %s of occurrence %s not found; treating occurrence as standalone",
            parent_ref, record.reference,
        )
        return record

    def _parent_by_id(self, parent_ref: str) -> Optional[Reminder]:
        if not is_numeric_reference(parent_ref):
            return None
        row = self.store.get_reminder_by_id(int(parent_ref))
        return Reminder.model_validate(row) if row else None

    def _parent_by_any_id(self, parent_ref: str) -> Optional[Reminder]:
        try:
            rows = self.store.find_reminders_by_any_id(parent_ref)
        except UnsupportedQueryError as e:
            logger.debug("redirect: disjunctive lookup unsupported for %s (%s)", parent_ref, e)
            return None
        for row in rows:
            candidate = Reminder.model_validate(row)
            if candidate.matches(parent_ref):
                return candidate
        return None
