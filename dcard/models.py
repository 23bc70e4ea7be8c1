from pydantic import BaseModel, Field
from typing import Dict, Any, List, Optional


class ImportRequest(BaseModel):
    reference: str = Field(min_length=1)
    gateway_url: Optional[str] = None


class VerificationOut(BaseModel):
    fingerprint: str
    status: str
    verified: bool
    unsigned: bool
    reason: Optional[str] = None
    key_id: Optional[str] = None


class ImportResponse(BaseModel):
    message: str
    source: Optional[str] = None
    verification: VerificationOut
    card: Dict[str, Any]
    stored: bool
    location: Optional[str] = None


class CardOut(BaseModel):
    fingerprint: str
    document: Dict[str, Any]
    verified: bool
    unsigned: bool
    added_at: str


class CardList(BaseModel):
    cards: List[CardOut] = Field(default_factory=list)


class TrustedKeyOut(BaseModel):
    key_id: str
    issuer: str
    public_key: str
