"""In-memory registry of composer sessions, one per open "new invoice" page."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Request

from src.core.exceptions import NotFoundError
from src.modules.invoices.composer import InvoiceComposer

logger = logging.getLogger(__name__)


@dataclass
class _DraftEntry:
    composer: InvoiceComposer
    touched_at: datetime


class DraftStore:
    """Drafts live only in process memory and expire after `ttl` of inactivity."""

    def __init__(self, ttl: timedelta):
        self.ttl = ttl
        self._drafts: dict[str, _DraftEntry] = {}

    def __len__(self) -> int:
        return len(self._drafts)

    def create(self, composer: InvoiceComposer) -> str:
        self.purge_expired()
        draft_id = uuid.uuid4().hex
        self._drafts[draft_id] = _DraftEntry(composer=composer, touched_at=_now())
        return draft_id

    def get(self, draft_id: str) -> InvoiceComposer:
        entry = self._drafts.get(draft_id)
        if entry is None or self._is_expired(entry):
            self._drafts.pop(draft_id, None)
            raise NotFoundError("Invoice draft", draft_id)
        entry.touched_at = _now()
        return entry.composer

    def discard(self, draft_id: str) -> None:
        self._drafts.pop(draft_id, None)

    def purge_expired(self) -> int:
        expired = [key for key, entry in self._drafts.items() if self._is_expired(entry)]
        for key in expired:
            del self._drafts[key]
        if expired:
            logger.info("Dropped %s expired invoice drafts", len(expired))
        return len(expired)

    def _is_expired(self, entry: _DraftEntry) -> bool:
        return _now() - entry.touched_at > self.ttl


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_draft_store(request: Request) -> DraftStore:
    """FastAPI dependency: the application's draft store."""
    return request.app.state.drafts
