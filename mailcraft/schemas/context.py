from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class ToneScale(BaseModel):
    formalCasual: int = Field(5, ge=1, le=10)
    seriousHumorous: int = Field(5, ge=1, le=10)
    respectfulIrreverent: int = Field(5, ge=1, le=10)


class FeatureBenefit(BaseModel):
    feature: str = ""
    benefit: str = ""
    outcome: str = ""


class CaseStudy(BaseModel):
    company: str = ""
    challenge: str = ""
    result: str = ""
    metric: str = ""


class Testimonial(BaseModel):
    quote: str = ""
    author: str = ""
    role: str = ""
    company: str = ""


class PersonaType(BaseModel):
    label: str = ""
    description: str = ""


class BrandContext(BaseModel):
    name: str = ""
    tagline: str = ""
    mission: str = ""
    voiceCharacteristics: List[str] = []
    toneScale: ToneScale = ToneScale()
    dos: List[str] = []
    donts: List[str] = []
    keywords: List[str] = []
    avoidWords: List[str] = []
    # Derived from voiceCharacteristics for older clients.
    voice: str = ""


class AudienceContext(BaseModel):
    jobTitles: List[str] = []
    industries: List[str] = []
    companySize: str = ""
    revenueRange: str = ""
    goals: List[str] = []
    values: List[str] = []
    fears: List[str] = []
    objections: List[str] = []
    painPoints: List[str] = []
    desiredTransformation: str = ""
    buyingTriggers: List[str] = []
    # Derived from jobTitles/industries and goals for older clients.
    description: str = ""
    desires: List[str] = []


class OfferContext(BaseModel):
    name: str = ""
    pitch: str = ""
    featuresBenefits: List[FeatureBenefit] = []
    usp: str = ""
    pricing: str = ""
    guarantees: str = ""
    bonuses: List[str] = []
    caseStudies: List[CaseStudy] = []
    testimonials: List[Testimonial] = []
    brandStory: str = ""
    socialProofStats: List[str] = []
    personaTypes: List[PersonaType] = []
    # Alias of usp for older clients.
    details: str = ""


class FullContext(BaseModel):
    brand: BrandContext = BrandContext()
    audience: AudienceContext = AudienceContext()
    offer: OfferContext = OfferContext()
    isComplete: bool = True


ContextSection = Literal["brand", "audience", "offer"]


class ProcessContextRequest(BaseModel):
    raw_text: str = Field(..., min_length=1)
    input_type: Literal["text", "file", "url"] = "text"


class ExtractUrlRequest(BaseModel):
    url: str = Field(..., min_length=1)


class ExtractedSourceResponse(BaseModel):
    text: str
    name: str
    characters: int
    url: Optional[str] = None
