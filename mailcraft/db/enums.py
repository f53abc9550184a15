from enum import Enum


class SubscriptionStatusEnum(str, Enum):
    free = "free"
    premium = "premium"
    cancelled = "cancelled"


class CampaignStatusEnum(str, Enum):
    draft = "draft"
    active = "active"
    completed = "completed"


class EmailStatusEnum(str, Enum):
    draft = "draft"
    ready = "ready"


class ApiKeyProviderEnum(str, Enum):
    openai = "openai"
    anthropic = "anthropic"


class CampaignGoalEnum(str, Enum):
    welcome = "welcome"
    onboarding = "onboarding"
    newsletter = "newsletter"
    nurture = "nurture"
    educational = "educational"
    launch = "launch"
    announcement = "announcement"
    sales = "sales"
    seasonal = "seasonal"
    post_purchase = "post_purchase"
    upsell = "upsell"
    reactivation = "reactivation"
    reengagement = "reengagement"
    custom = "custom"


class ExportFormatEnum(str, Enum):
    txt = "txt"
    json = "json"
    csv = "csv"
