from mailcraft.db.models import ProcessedStripeEvent
from mailcraft.db.repositories.base import Repository


class StripeEventsRepository(Repository):
    def is_processed(self, event_id: str) -> bool:
        return self.session.get(ProcessedStripeEvent, event_id) is not None

    def mark_processed(self, event_id: str, event_type: str) -> None:
        self.session.add(ProcessedStripeEvent(event_id=event_id, event_type=event_type))
        self._commit()
