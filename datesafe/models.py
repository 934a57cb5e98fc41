"""
models.py - Pydantic Request/Response Schemas
===============================================

Defines the wire format of the verification service and the result types
produced by the three signal providers and the fusion engine.

Request flow:
    Client → VerificationRequest (POST /verify) → FusionEngine → ComprehensiveVerificationResult

Design decisions:
    - Field names are camelCase, matching the JSON contract consumed by the UI.
    - Request models are frozen; a submitted request is never modified.
    - All list fields default to an empty list, never None.
    - Score fields are floats in [0, 100].
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Epoch values above this are treated as milliseconds (JS Date.getTime()).
_EPOCH_MS_CUTOFF = 100_000_000_000


class RiskLevel(str, Enum):
    """Ordinal risk classification of the fused trust score."""
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)


_RISK_ORDER = [RiskLevel.VERY_LOW, RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ═══════════════════════════════════════════════════════════════════════
# REQUEST MODELS - Submitted by the UI
# ═══════════════════════════════════════════════════════════════════════

class Message(BaseModel):
    """A single chat message. Conversation order is chronological and significant.

    Attributes:
        sender:      'user' (the person being protected) or 'match'.
        content:     The message text.
        timestamp:   When the message was sent. Epoch seconds or milliseconds are accepted.
        readReceipt: Optional read-receipt flag from the platform.
    """
    model_config = ConfigDict(extra="ignore", frozen=True)

    sender: str = Field(default="match", pattern="^(user|match)$")
    content: str = Field(default="")
    timestamp: datetime = Field(default_factory=lambda: datetime(1970, 1, 1, tzinfo=timezone.utc))
    readReceipt: Optional[bool] = Field(default=None)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value):
        """Normalize epoch numbers to datetimes; strings are left to pydantic."""
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            seconds = value / 1000.0 if value > _EPOCH_MS_CUTOFF else float(value)
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        return value

    @field_validator("timestamp", mode="after")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        """Naive timestamps are read as UTC so latencies can always be subtracted."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ProfileData(BaseModel):
    """Self-described profile details shown on the dating platform."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: Optional[str] = None
    age: Optional[int] = None
    location: Optional[str] = None
    profession: Optional[str] = None
    bio: Optional[str] = None


class VerificationContext(BaseModel):
    """How long the match has existed and which contact steps have been tried."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    platform: str = Field(default="unknown")
    matchDurationDays: float = Field(default=0, ge=0)
    videoCallAttempted: bool = False
    phoneCallAttempted: bool = False
    meetingAttempted: bool = False


class VerificationRequest(BaseModel):
    """Incoming POST /verify payload. Every input type is optional."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    photos: List[str] = Field(default_factory=list)
    profileUrls: List[str] = Field(default_factory=list)
    conversation: List[Message] = Field(default_factory=list)
    profileData: Optional[ProfileData] = Field(default=None)
    context: Optional[VerificationContext] = Field(default=None)

    @field_validator("photos", "profileUrls", "conversation", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return [] if value is None else value


# ═══════════════════════════════════════════════════════════════════════
# PHOTO SIGNALS - CatfishAnalysis
# ═══════════════════════════════════════════════════════════════════════

class FaceAnalysis(BaseModel):
    facesDetected: int = 0
    ageConsistency: bool = True
    genderConsistency: bool = True
    faceMatchAcrossPhotos: float = 50.0
    professionalPhotoLikelihood: float = 0.0
    deepfakeProbability: float = 0.0


class ReverseSearchMatch(BaseModel):
    url: str
    context: str = "Unknown"
    sourceType: str = "unknown"   # social_media | stock_photo | model_portfolio | adult_content | unknown


class MetadataAnalysis(BaseModel):
    cameraConsistency: bool = True
    locationConsistency: bool = True
    timestampAnalysis: List[str] = Field(default_factory=list)
    editingSoftwareDetected: List[str] = Field(default_factory=list)


class TechnicalIndicators(BaseModel):
    compressionArtifacts: bool = False
    upscalingDetected: bool = False
    noisePatternAnalysis: str = "unavailable"


class ImageForensics(BaseModel):
    reverseSearchMatches: List[ReverseSearchMatch] = Field(default_factory=list)
    metadataAnalysis: MetadataAnalysis = Field(default_factory=MetadataAnalysis)
    technicalIndicators: TechnicalIndicators = Field(default_factory=TechnicalIndicators)


class PhotoPatterns(BaseModel):
    photoProgressionNatural: bool = True
    lightingConsistency: float = 50.0
    backgroundConsistency: float = 50.0
    backgroundAnalysis: List[str] = Field(default_factory=list)


class CatfishAnalysis(BaseModel):
    """Photo forensics result. authenticityScore is always 100 - overallRiskScore."""
    overallRiskScore: float = 0.0
    faceAnalysis: FaceAnalysis = Field(default_factory=FaceAnalysis)
    imageForensics: ImageForensics = Field(default_factory=ImageForensics)
    photoPatterns: PhotoPatterns = Field(default_factory=PhotoPatterns)
    redFlags: List[str] = Field(default_factory=list)
    unavailableSignals: List[str] = Field(default_factory=list)
    authenticityScore: float = 100.0


# ═══════════════════════════════════════════════════════════════════════
# CONVERSATION SIGNALS - ConversationAnalysis / ScammerProfile
# ═══════════════════════════════════════════════════════════════════════

class BehavioralPattern(BaseModel):
    """A confidence-scored match against a known manipulation or fraud archetype."""
    patternType: str
    confidence: float = Field(ge=0, le=100)
    indicators: List[str] = Field(default_factory=list)
    severity: Severity = Severity.MEDIUM


class ResponseTimeAnalysis(BaseModel):
    averageResponseTime: float = 0.0     # minutes
    consistencyScore: float = 50.0
    timezoneIndicators: List[str] = Field(default_factory=list)
    suspiciousTiming: bool = False


class LanguageAnalysis(BaseModel):
    grammarConsistency: float = 50.0
    vocabularySophistication: float = 50.0
    nativeSpeakerProbability: float = 50.0
    copyPasteLikelihood: float = 0.0
    scriptFollowingProbability: float = 0.0


class EmotionalPatterns(BaseModel):
    emotionalProgressionNatural: bool = True
    loveBombingDetected: bool = False
    emotionalManipulationScore: float = 0.0
    sympathySeekingFrequency: int = 0
    crisisFabricationLikelihood: float = 0.0


class MessagePatterns(BaseModel):
    responseTimeAnalysis: ResponseTimeAnalysis = Field(default_factory=ResponseTimeAnalysis)
    languageAnalysis: LanguageAnalysis = Field(default_factory=LanguageAnalysis)
    emotionalPatterns: EmotionalPatterns = Field(default_factory=EmotionalPatterns)


class ConversationAnalysis(BaseModel):
    messagePatterns: MessagePatterns = Field(default_factory=MessagePatterns)
    behavioralRedFlags: List[BehavioralPattern] = Field(default_factory=list)
    authenticityScore: float = 50.0
    riskAssessment: str = "medium"   # very_low | low | medium | high | very_high


class ScammerProfile(BaseModel):
    scammerType: str
    confidenceLevel: float
    typicalPatterns: List[str] = Field(default_factory=list)
    nextLikelyMoves: List[str] = Field(default_factory=list)
    countermeasures: List[str] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════
# PROFILE SIGNALS - ProfileVerificationResult
# ═══════════════════════════════════════════════════════════════════════

class FriendNetworkAnalysis(BaseModel):
    totalConnections: int = 0
    mutualFriends: int = 0
    networkAuthenticity: float = 50.0


class SocialFootprint(BaseModel):
    platformsFound: List[str] = Field(default_factory=list)
    accountAges: List[float] = Field(default_factory=list)   # months
    consistencyAcrossPlatforms: float = 50.0
    friendNetworkAnalysis: FriendNetworkAnalysis = Field(default_factory=FriendNetworkAnalysis)


class WebFootprint(BaseModel):
    webPresenceYears: float = 0.0
    professionalPresence: bool = False
    newsMentions: List[str] = Field(default_factory=list)
    publicRecordsMatch: bool = False


class LocationVerification(BaseModel):
    statedLocation: str = ""
    verifiedLocations: List[str] = Field(default_factory=list)
    locationConsistent: Optional[bool] = None   # None = nothing to compare against


class ProfileVerificationResult(BaseModel):
    profileLegitimacy: float = 50.0
    socialFootprint: SocialFootprint = Field(default_factory=SocialFootprint)
    digitalFootprint: WebFootprint = Field(default_factory=WebFootprint)
    locationVerification: LocationVerification = Field(default_factory=LocationVerification)
    verificationConfidence: float = 50.0
    unavailableSignals: List[str] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════
# FUSED RESULT - ComprehensiveVerificationResult
# ═══════════════════════════════════════════════════════════════════════

class FacialVerification(BaseModel):
    consistencyAcrossPhotos: float = 50.0
    deepfakeProbability: float = 0.0
    professionalModelLikelihood: float = 0.0
    ageProgressionNatural: bool = True


class DigitalFootprintSummary(BaseModel):
    socialMediaAuthenticity: float = 50.0
    webPresenceDepth: float = 0.0   # years
    crossPlatformConsistency: float = 50.0
    friendNetworkQuality: float = 50.0


class ConversationIntelligence(BaseModel):
    responsePatternHuman: float = 50.0
    languageAuthenticity: float = 50.0
    emotionalManipulationDetected: bool = False
    scamPatternMatches: List[str] = Field(default_factory=list)


class LikelihoodAssessments(BaseModel):
    catfishProbability: float = 50.0
    scammerProbability: float = 50.0
    botProbability: float = 50.0
    genuinePersonProbability: float = 50.0


class ComprehensiveVerificationResult(BaseModel):
    """The fusion engine's sole output."""
    overallTrustScore: float = 50.0
    riskLevel: RiskLevel = RiskLevel.MEDIUM

    catfishAnalysis: CatfishAnalysis = Field(default_factory=CatfishAnalysis)
    behavioralAnalysis: ConversationAnalysis = Field(default_factory=ConversationAnalysis)
    profileVerification: ProfileVerificationResult = Field(default_factory=ProfileVerificationResult)
    scammerProfile: Optional[ScammerProfile] = None

    facialVerification: FacialVerification = Field(default_factory=FacialVerification)
    digitalFootprint: DigitalFootprintSummary = Field(default_factory=DigitalFootprintSummary)
    conversationIntelligence: ConversationIntelligence = Field(default_factory=ConversationIntelligence)

    criticalWarnings: List[str] = Field(default_factory=list)
    immediateThreats: List[str] = Field(default_factory=list)
    safetyRecommendations: List[str] = Field(default_factory=list)

    likelihoodAssessments: LikelihoodAssessments = Field(default_factory=LikelihoodAssessments)

    verificationSteps: List[str] = Field(default_factory=list)
    conversationRecommendations: List[str] = Field(default_factory=list)
    protectionMeasures: List[str] = Field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════
# SUMMARY PAYLOADS - Returned by the quick-analysis endpoints
# ═══════════════════════════════════════════════════════════════════════

class PhotoSummary(BaseModel):
    catfishRisk: float
    faceConsistency: float
    deepfakeProbability: float
    professionalLikelihood: float
    reverseSearchHits: int
    redFlags: List[str] = Field(default_factory=list)
    recommendation: str


class ConversationSummary(BaseModel):
    authenticityScore: float
    scammerProbability: float
    botProbability: float
    emotionalManipulation: bool
    languageAuthenticity: float
    scammerType: Optional[str] = None
    redFlags: List[BehavioralPattern] = Field(default_factory=list)
    immediateThreats: List[str] = Field(default_factory=list)
    safetyRecommendations: List[str] = Field(default_factory=list)
    nextLikelyMoves: List[str] = Field(default_factory=list)
    countermeasures: List[str] = Field(default_factory=list)


class PhotoAnalysisRequest(BaseModel):
    """Quick photo check: POST /analyze/photos."""
    model_config = ConfigDict(extra="ignore")

    photos: List[str] = Field(default_factory=list)
    profileData: Optional[ProfileData] = None


class ConversationAnalysisRequest(BaseModel):
    """Quick conversation check: POST /analyze/conversation."""
    model_config = ConfigDict(extra="ignore")

    messages: List[Message] = Field(default_factory=list)


class SafetyCheckRequest(BaseModel):
    """Real-time safety check: profile details, social links, photos and context."""
    model_config = ConfigDict(extra="ignore")

    profile: Optional[ProfileData] = None
    socialLinks: List[str] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)
    context: Optional[VerificationContext] = None


class SafetyCheckResult(BaseModel):
    isSafe: bool
    trustScore: float
    riskLevel: RiskLevel
    criticalWarnings: List[str] = Field(default_factory=list)
    immediateThreats: List[str] = Field(default_factory=list)
    verificationNeeded: List[str] = Field(default_factory=list)
    protectionMeasures: List[str] = Field(default_factory=list)
    shouldContinue: bool
    emergencyStop: bool


class ExportReport(BaseModel):
    exportDate: str
    verificationResult: ComprehensiveVerificationResult
    summary: Dict[str, Any] = Field(default_factory=dict)
    savedTo: Optional[str] = None


