from mailcraft.db.repositories.accounts import AccountsRepository
from mailcraft.db.repositories.campaigns import CampaignsRepository
from mailcraft.db.repositories.stripe_events import StripeEventsRepository
from mailcraft.db.repositories.workspaces import WorkspacesRepository

__all__ = [
    "AccountsRepository",
    "CampaignsRepository",
    "StripeEventsRepository",
    "WorkspacesRepository",
]
