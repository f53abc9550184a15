from typing import List, Optional

from sqlalchemy import select

from mailcraft.db.models import Workspace
from mailcraft.db.repositories.base import Repository


class WorkspacesRepository(Repository):
    def list(self, owner_id: str) -> List[Workspace]:
        stmt = (
            select(Workspace)
            .where(Workspace.owner_id == owner_id)
            .order_by(Workspace.is_default.desc(), Workspace.created_at.asc())
        )
        return list(self.session.scalars(stmt).all())

    def list_defaults(self, owner_id: str) -> List[Workspace]:
        stmt = (
            select(Workspace)
            .where(Workspace.owner_id == owner_id, Workspace.is_default.is_(True))
            .order_by(Workspace.created_at.asc())
        )
        return list(self.session.scalars(stmt).all())

    def get(self, owner_id: str, workspace_id: str) -> Optional[Workspace]:
        stmt = select(Workspace).where(Workspace.owner_id == owner_id, Workspace.id == workspace_id)
        return self.session.scalars(stmt).first()

    def create(self, owner_id: str, name: str, *, is_default: bool = False, **fields) -> Workspace:
        workspace = Workspace(
            owner_id=owner_id,
            name=name,
            is_default=is_default,
            brand_context=fields.pop("brand_context", {}),
            audience_context=fields.pop("audience_context", {}),
            offer_context=fields.pop("offer_context", {}),
            **fields,
        )
        self.session.add(workspace)
        self._commit()
        self.session.refresh(workspace)
        return workspace

    def update(self, workspace: Workspace, **fields) -> Workspace:
        for key, value in fields.items():
            setattr(workspace, key, value)
        self._commit()
        self.session.refresh(workspace)
        return workspace

    def delete(self, workspace: Workspace) -> None:
        self.session.delete(workspace)
        self._commit()
