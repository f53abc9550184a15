from sqlalchemy.orm import Session

from mailcraft.db.base import ATOMIC_KEY


class Repository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _commit(self) -> None:
        # Inside `atomic()` writes are only flushed; the block commits once at the end.
        if self.session.info.get(ATOMIC_KEY):
            self.session.flush()
        else:
            self.session.commit()
