# fleetadmin/reminders/resolver.py

import logging
from typing import Any, Callable, Dict, List, Optional

from fleetadmin.core import config
from fleetadmin.core.errors import NotFoundError, UnsupportedQueryError, ValidationError
from fleetadmin.core.store import RecordStore, is_numeric_reference
from fleetadmin.schemas.reminders import Reminder

logger = logging.getLogger(__name__)


class ReminderResolver:
    """
    Resuelve una referencia (id numérico o documentId opaco) al registro canónico.

    Estrategias, de la más barata a la más cara:
      1) numérica  -> lookup directo por id (se valida existencia, nunca se escanea)
      2) opaca     -> lookup directo por documentId (RPC)
      3) opaca     -> consulta filtrada document_id = ref
      4) opaca     -> escaneo paginado acotado con match lineal

    Gana la primera que encuentra el registro. "No soportado" o "no encontrado"
    pasan a la siguiente; cualquier otro error (transporte, 5xx) se propaga.
    """

    def __init__(
        self,
        store: RecordStore,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
    ):
        self.store = store
        self.page_size = page_size or config.RESOLVER_PAGE_SIZE
        self.max_pages = max_pages or config.RESOLVER_MAX_PAGES

    def resolve(self, reference: Any) -> Reminder:
        ref = str(reference).strip() if reference is not None else ""
        if not ref:
            raise ValidationError("Reminder reference is required")

        if is_numeric_reference(ref):
            row = self.store.get_reminder_by_id(int(ref))
            if row is None:
                raise NotFoundError(f"Reminder {ref} not found")
            return Reminder.model_validate(row)

        for strategy in (self._by_point_lookup, self._by_filter, self._by_scan):
            row = self._attempt(strategy, ref)
            if row is not None:
                return Reminder.model_validate(row)

        raise NotFoundError(f"Reminder {ref} not found")

    def find(self, reference: Any) -> Optional[Reminder]:
        try:
            return self.resolve(reference)
        except NotFoundError:
            return None

    # -------------------------
    # Estrategias
    # -------------------------
    def _attempt(self, strategy: Callable[[str], Optional[Dict[str, Any]]], ref: str) -> Optional[Dict[str, Any]]:
        try:
            return strategy(ref)
        except UnsupportedQueryError as e:
            logger.debug("resolver: %s unsupported for %s (%s)", strategy.__name__, ref, e)
            return None

    def _by_point_lookup(self, ref: str) -> Optional[Dict[str, Any]]:
        row = self.store.get_reminder_by_document_id(ref)
        if row and row.get("document_id") == ref:
            return row
        return None

    def _by_filter(self, ref: str) -> Optional[Dict[str, Any]]:
        for row in self.store.find_reminders_by_document_id(ref):
            if row.get("document_id") == ref:
                return row
        return None

    def _by_scan(self, ref: str) -> Optional[Dict[str, Any]]:
        logger.warning(
            "resolver: falling back to paginated scan for %s (page_size=%d, max_pages=%d)",
            ref, self.page_size, self.max_pages,
        )
        seen: List[Dict[str, Any]] = []
        for page in range(1, self.max_pages + 1):
            rows = self.store.list_reminders_page(page, self.page_size)
            seen.extend(rows)
            for row in rows:
                if row.get("document_id") == ref:
                    logger.info("resolver: %s found on page %d after scanning %d rows", ref, page, len(seen))
                    return row
            if len(rows) < self.page_size:
                break
        return None
