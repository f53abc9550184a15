from typing import List, Optional

from sqlalchemy import delete, select, update

from mailcraft.db.models import Campaign
from mailcraft.db.repositories.base import Repository


class CampaignsRepository(Repository):
    def list(self, owner_id: str, workspace_id: str) -> List[Campaign]:
        stmt = (
            select(Campaign)
            .where(Campaign.owner_id == owner_id, Campaign.workspace_id == workspace_id)
            .order_by(Campaign.created_at.desc())
        )
        return list(self.session.scalars(stmt).all())

    def list_for_owner(self, owner_id: str) -> List[Campaign]:
        stmt = select(Campaign).where(Campaign.owner_id == owner_id).order_by(Campaign.created_at.asc())
        return list(self.session.scalars(stmt).all())

    def get(self, owner_id: str, campaign_id: str) -> Optional[Campaign]:
        stmt = select(Campaign).where(Campaign.owner_id == owner_id, Campaign.id == campaign_id)
        return self.session.scalars(stmt).first()

    def exists(self, campaign_id: str) -> bool:
        return self.session.get(Campaign, campaign_id) is not None

    def create(self, owner_id: str, workspace_id: str, name: str, **fields) -> Campaign:
        campaign = Campaign(owner_id=owner_id, workspace_id=workspace_id, name=name, **fields)
        self.session.add(campaign)
        self._commit()
        self.session.refresh(campaign)
        return campaign

    def update(self, campaign: Campaign, **fields) -> Campaign:
        for key, value in fields.items():
            setattr(campaign, key, value)
        self._commit()
        self.session.refresh(campaign)
        return campaign

    def delete(self, owner_id: str, campaign_id: str) -> bool:
        campaign = self.get(owner_id, campaign_id)
        if not campaign:
            return False
        self.session.delete(campaign)
        self._commit()
        return True

    def move_to_workspace(self, from_workspace_id: str, to_workspace_id: str) -> None:
        self.session.execute(
            update(Campaign)
            .where(Campaign.workspace_id == from_workspace_id)
            .values(workspace_id=to_workspace_id)
        )
        self._commit()

    def delete_for_workspace(self, workspace_id: str) -> None:
        self.session.execute(delete(Campaign).where(Campaign.workspace_id == workspace_id))
        self._commit()
