"""
engine.py - Integrated Verification (Fusion) Engine
====================================================

Combines the photo, conversation and profile analyzers into one
ComprehensiveVerificationResult.

Pipeline for one request:
    1. Start from neutral defaults (trust 50, risk medium, provider defaults)
    2. Run each provider whose input is present, concurrently and time-boxed;
       a failure becomes a critical warning and the default result is kept
    3. Likelihood base values (catfish / scammer / bot)
    4. Cross-reference and timeline rules add warnings, threats and boosts
    5. Clamp likelihoods, derive genuine-person probability
    6. Weighted trust score minus warning/threat penalties, then risk level
    7. Recommendations
    8. Immediate-threat sweep

Trust score weights:
    25%  100 - image risk
    30%  behavioral authenticity
    20%  profile legitimacy
    15%  facial composite   (face consistency, 100 - deepfake, 100 - professional)
    10%  digital composite  (social authenticity, min(100, 20 x years), consistency)
    -10 per critical warning, -15 per immediate threat, clamped to [0, 100]

perform_comprehensive_verification() never raises.
"""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from datesafe import config
from datesafe.cache import VerificationCache
from datesafe.conversation import ConversationSignalProvider
from datesafe.errors import ProviderFailure
from datesafe.models import (
    CatfishAnalysis,
    ComprehensiveVerificationResult,
    ConversationAnalysis,
    ConversationIntelligence,
    DigitalFootprintSummary,
    FacialVerification,
    ProfileVerificationResult,
    RiskLevel,
    ScammerProfile,
    Severity,
    VerificationContext,
    VerificationRequest,
)
from datesafe.patterns import PatternRegistry
from datesafe.photo import PhotoSignalProvider
from datesafe.profile import ProfileSignalProvider
from datesafe.providers import (
    HttpProfileFetcher,
    HttpReverseImageSearch,
    PillowImageInspector,
    PythonWhoisLookup,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# MESSAGES
# ═══════════════════════════════════════════════════════════════════════

PHOTO_FAILED = "Photo analysis failed - unable to verify image authenticity"
PROFILE_FAILED = "Profile verification failed - unable to validate social media presence"
BEHAVIOR_FAILED = "Behavioral analysis failed - unable to analyze conversation patterns"
VERIFICATION_FAILED = "Verification failed - results are incomplete, exercise extreme caution"

MULTI_SYSTEM_FRAUD = "HIGH RISK: Both image analysis and behavioral patterns indicate potential fraud"
MULTI_SYSTEM_THREAT = "Multiple verification systems flagged this profile as suspicious"
PHOTOS_ELSEWHERE = "Photos found elsewhere online combined with weak social media presence"
LANGUAGE_LOCATION = "Language patterns inconsistent with claimed location"
PROFESSIONAL_SCRIPTED = "Professional photos combined with scripted language patterns"
ROMANCE_ESCALATION = "Romance scammer pattern detected: fast emotional escalation with financial requests"
BOT_BEHAVIOR = "Automated/bot behavior detected in conversation patterns"

EARLY_RED_FLAGS = "Multiple red flags detected within first week of contact"
CALL_AVOIDANCE = "No voice/video contact after 2+ weeks - avoidance pattern"
MEETING_AVOIDANCE = "No meeting attempts after 1+ month - possible catfish/scammer"

FINANCIAL_ALERT = "FINANCIAL SCAM ALERT: Money requests detected in conversation"
SEXTORTION_ALERT = "SEXTORTION RISK: Pattern indicates potential blackmail scheme"
IDENTITY_ALERT = "IDENTITY THEFT RISK: Suspicious information gathering detected"
DEEPFAKE_ALERT = "DEEPFAKE ALERT: AI-generated images detected - not a real person"
CATFISH_ALERT = "CATFISH ALERT: High probability of fake identity"

BASELINE_PROTECTION = [
    "Never share financial information or send money",
    "Meet in public places for first meetings",
    "Tell friends/family about your dating activities",
    "Trust your instincts - if something feels off, investigate further",
]

HIGH_RISK_PROTECTION = [
    "Consider ending communication due to high risk indicators",
    "Report suspicious profiles to the dating platform",
    "Consider contacting authorities if threats or scams are involved",
]

# Indicator prefixes written by the conversation analyzer for explicit requests
MONEY_INDICATOR = "Money request detected"
INFO_INDICATOR = "Information request detected"


def risk_level_for(score: float) -> RiskLevel:
    """Map a trust score to its risk level: >=80 very_low, >=60 low, >=40 medium, >=20 high."""
    if score >= 80:
        return RiskLevel.VERY_LOW
    if score >= 60:
        return RiskLevel.LOW
    if score >= 40:
        return RiskLevel.MEDIUM
    if score >= 20:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def is_scammer_pattern(pattern_type: str) -> bool:
    return pattern_type == "scammer" or pattern_type.endswith("_scammer")


@dataclass
class Likelihoods:
    """Mutable working copy of the likelihood estimates before clamping."""
    catfish: float = 0.0
    scammer: float = 0.0
    bot: float = 0.0


class FusionEngine:
    """Runs the signal providers for a request and fuses their results."""

    WEIGHT_IMAGE = 0.25
    WEIGHT_BEHAVIOR = 0.30
    WEIGHT_PROFILE = 0.20
    WEIGHT_FACIAL = 0.15
    WEIGHT_DIGITAL = 0.10

    WARNING_PENALTY = 10
    THREAT_PENALTY = 15

    def __init__(
        self,
        photo_provider: Optional[PhotoSignalProvider] = None,
        conversation_provider: Optional[ConversationSignalProvider] = None,
        profile_provider: Optional[ProfileSignalProvider] = None,
        cache: Optional[VerificationCache] = None,
        provider_timeout: float = config.PROVIDER_TIMEOUT_SECONDS,
    ) -> None:
        self._photo = photo_provider
        self._conversation = conversation_provider
        self._profile = profile_provider
        self._cache = cache
        self._timeout = provider_timeout

    @classmethod
    def from_config(cls, registry: Optional[PatternRegistry] = None) -> "FusionEngine":
        """Build an engine with the default providers described by the environment."""
        registry = registry or PatternRegistry.load(config.PATTERN_REGISTRY_PATH or None)
        reverse = (
            HttpReverseImageSearch(config.REVERSE_SEARCH_URL, config.REVERSE_SEARCH_API_KEY)
            if config.REVERSE_SEARCH_URL
            else None
        )
        return cls(
            photo_provider=PhotoSignalProvider(PillowImageInspector(), reverse_search=reverse),
            conversation_provider=ConversationSignalProvider(registry),
            profile_provider=ProfileSignalProvider(HttpProfileFetcher(), PythonWhoisLookup()),
            cache=VerificationCache() if config.CACHE_ENABLED else None,
        )

    def close(self) -> None:
        """Drop cached results."""
        if self._cache is not None:
            self._cache.clear()

    # ── public API ──────────────────────────────────────────────────────

    def perform_comprehensive_verification(self, request: VerificationRequest) -> ComprehensiveVerificationResult:
        if self._cache is not None:
            cached = self._cache.get(request)
            if cached is not None:
                logger.info("Verification served from cache")
                return cached

        try:
            result, complete = self._verify(request)
        except Exception:
            logger.exception("Verification pipeline failed")
            return ComprehensiveVerificationResult(
                overallTrustScore=0.0,
                riskLevel=RiskLevel.CRITICAL,
                criticalWarnings=[VERIFICATION_FAILED],
                protectionMeasures=BASELINE_PROTECTION + HIGH_RISK_PROTECTION,
            )

        # Results with a failed or timed-out provider are not cached
        if self._cache is not None and complete:
            self._cache.put(request, result)
        return result

    # ── pipeline ────────────────────────────────────────────────────────

    def _verify(self, request: VerificationRequest) -> Tuple[ComprehensiveVerificationResult, bool]:
        """Returns the fused result and whether every provider that ran succeeded."""
        result = ComprehensiveVerificationResult()
        complete = self._run_providers(request, result)

        likelihoods = self._base_likelihoods(result)
        self._cross_reference(result, likelihoods)
        if request.context is not None:
            self._timeline(request.context, result, likelihoods)
        self._finalize_likelihoods(result, likelihoods)

        result.overallTrustScore = self._trust_score(result)
        result.riskLevel = risk_level_for(result.overallTrustScore)

        self._recommendations(result)
        self._threat_sweep(result)

        logger.info(
            f"Verification complete: trust={result.overallTrustScore:.1f} "
            f"risk={result.riskLevel.value} warnings={len(result.criticalWarnings)} "
            f"threats={len(result.immediateThreats)}"
        )
        return result, complete

    def _run_providers(self, request: VerificationRequest, result: ComprehensiveVerificationResult) -> bool:
        """Run every applicable provider within the shared deadline.

        Each request gets its own executor, so a provider that hangs past the
        deadline only holds its own thread until it returns. Returns False when
        any provider raised or timed out.
        """
        jobs = []
        if request.photos and self._photo is not None:
            jobs.append(("photo", PHOTO_FAILED, self._photo.analyze, (request.photos, request.profileData)))
        if request.profileUrls and self._profile is not None:
            jobs.append(("profile", PROFILE_FAILED, self._profile.verify, (request.profileUrls, request.profileData)))
        if request.conversation and self._conversation is not None:
            jobs.append(("behavior", BEHAVIOR_FAILED, self._analyze_conversation, (request.conversation,)))
        if not jobs:
            return True

        outcomes: Dict[str, Any] = {}
        pool = ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="verify")
        try:
            tasks: List[Tuple[str, str, Future]] = [
                (subsystem, warning, pool.submit(fn, *args)) for subsystem, warning, fn, args in jobs
            ]
            deadline = time.monotonic() + self._timeout
            for subsystem, warning, future in tasks:
                try:
                    outcomes[subsystem] = self._collect(subsystem, future, deadline)
                except ProviderFailure as failure:
                    logger.error(f"Provider failure: {failure}")
                    result.criticalWarnings.append(warning)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        if "photo" in outcomes:
            self._apply_photo(outcomes["photo"], result)
        if "profile" in outcomes:
            self._apply_profile(outcomes["profile"], result)
        if "behavior" in outcomes:
            self._apply_behavior(*outcomes["behavior"], result=result)
        return len(outcomes) == len(jobs)

    @staticmethod
    def _collect(subsystem: str, future: Future, deadline: float) -> Any:
        try:
            return future.result(timeout=max(0.0, deadline - time.monotonic()))
        except FutureTimeout as exc:
            future.cancel()
            raise ProviderFailure(subsystem, TimeoutError("provider timed out")) from exc
        except Exception as exc:
            raise ProviderFailure(subsystem, exc) from exc

    def _analyze_conversation(self, messages) -> Tuple[ConversationAnalysis, Optional[ScammerProfile]]:
        return self._conversation.analyze(messages), self._conversation.detect_scammer_type(messages)

    @staticmethod
    def _apply_photo(analysis: CatfishAnalysis, result: ComprehensiveVerificationResult) -> None:
        result.catfishAnalysis = analysis
        result.facialVerification = FacialVerification(
            consistencyAcrossPhotos=analysis.faceAnalysis.faceMatchAcrossPhotos,
            deepfakeProbability=analysis.faceAnalysis.deepfakeProbability,
            professionalModelLikelihood=analysis.faceAnalysis.professionalPhotoLikelihood,
            ageProgressionNatural=analysis.photoPatterns.photoProgressionNatural,
        )

    @staticmethod
    def _apply_profile(verification: ProfileVerificationResult, result: ComprehensiveVerificationResult) -> None:
        result.profileVerification = verification
        network = verification.socialFootprint.friendNetworkAnalysis
        result.digitalFootprint = DigitalFootprintSummary(
            socialMediaAuthenticity=network.networkAuthenticity,
            webPresenceDepth=verification.digitalFootprint.webPresenceYears,
            crossPlatformConsistency=verification.socialFootprint.consistencyAcrossPlatforms,
            friendNetworkQuality=network.networkAuthenticity,
        )

    @staticmethod
    def _apply_behavior(
        analysis: ConversationAnalysis,
        scammer_profile: Optional[ScammerProfile],
        result: ComprehensiveVerificationResult,
    ) -> None:
        result.behavioralAnalysis = analysis
        result.scammerProfile = scammer_profile
        patterns = analysis.messagePatterns
        result.conversationIntelligence = ConversationIntelligence(
            responsePatternHuman=patterns.responseTimeAnalysis.consistencyScore,
            languageAuthenticity=patterns.languageAnalysis.nativeSpeakerProbability,
            emotionalManipulationDetected=patterns.emotionalPatterns.emotionalManipulationScore > 50,
            scamPatternMatches=[flag.patternType for flag in analysis.behavioralRedFlags],
        )

    # ── likelihoods and rules ───────────────────────────────────────────

    @staticmethod
    def _base_likelihoods(result: ComprehensiveVerificationResult) -> Likelihoods:
        facial = result.facialVerification
        patterns = result.behavioralAnalysis.messagePatterns
        scammer_flags = sum(
            1 for flag in result.behavioralAnalysis.behavioralRedFlags if is_scammer_pattern(flag.patternType)
        )

        return Likelihoods(
            catfish=(
                result.catfishAnalysis.overallRiskScore * 0.4
                + (100 - facial.consistencyAcrossPhotos) * 0.3
                + facial.professionalModelLikelihood * 0.3
            ),
            scammer=(
                scammer_flags * 25
                + patterns.emotionalPatterns.emotionalManipulationScore * 0.5
                + (30 if result.conversationIntelligence.emotionalManipulationDetected else 0)
            ),
            bot=(
                patterns.languageAnalysis.copyPasteLikelihood * 0.6
                + (40 if patterns.responseTimeAnalysis.suspiciousTiming else 0)
            ),
        )

    @staticmethod
    def _cross_reference(result: ComprehensiveVerificationResult, likelihoods: Likelihoods) -> None:
        behavior = result.behavioralAnalysis
        language = behavior.messagePatterns.languageAnalysis
        emotional = behavior.messagePatterns.emotionalPatterns
        timing = behavior.messagePatterns.responseTimeAnalysis

        if result.catfishAnalysis.overallRiskScore > 70 and behavior.authenticityScore < 30:
            result.criticalWarnings.append(MULTI_SYSTEM_FRAUD)
            result.immediateThreats.append(MULTI_SYSTEM_THREAT)

        reverse_hits = len(result.catfishAnalysis.imageForensics.reverseSearchMatches)
        if reverse_hits > 3 and result.profileVerification.profileLegitimacy < 40:
            result.criticalWarnings.append(PHOTOS_ELSEWHERE)

        # Location must have been checked and found inconsistent, not merely unknown
        if (
            language.nativeSpeakerProbability < 50
            and result.profileVerification.locationVerification.locationConsistent is False
        ):
            result.criticalWarnings.append(LANGUAGE_LOCATION)

        if result.facialVerification.professionalModelLikelihood > 70 and language.scriptFollowingProbability > 60:
            likelihoods.catfish += 30
            result.criticalWarnings.append(PROFESSIONAL_SCRIPTED)

        if emotional.loveBombingDetected and any(is_scammer_pattern(f.patternType) for f in behavior.behavioralRedFlags):
            likelihoods.scammer += 40
            result.immediateThreats.append(ROMANCE_ESCALATION)

        if timing.suspiciousTiming and language.copyPasteLikelihood > 70:
            likelihoods.bot += 35
            result.criticalWarnings.append(BOT_BEHAVIOR)

    @staticmethod
    def _timeline(context: VerificationContext, result: ComprehensiveVerificationResult, likelihoods: Likelihoods) -> None:
        days = context.matchDurationDays

        if days < 7 and len(result.behavioralAnalysis.behavioralRedFlags) > 2:
            result.criticalWarnings.append(EARLY_RED_FLAGS)

        if days >= 14 and not context.videoCallAttempted and not context.phoneCallAttempted:
            result.criticalWarnings.append(CALL_AVOIDANCE)
            likelihoods.catfish += 25

        if days >= 30 and not context.meetingAttempted:
            result.criticalWarnings.append(MEETING_AVOIDANCE)
            likelihoods.catfish += 20

    @staticmethod
    def _finalize_likelihoods(result: ComprehensiveVerificationResult, likelihoods: Likelihoods) -> None:
        assessed = result.likelihoodAssessments
        assessed.catfishProbability = _clamp(likelihoods.catfish)
        assessed.scammerProbability = _clamp(likelihoods.scammer)
        assessed.botProbability = _clamp(likelihoods.bot)
        average = (assessed.catfishProbability + assessed.scammerProbability + assessed.botProbability) / 3
        assessed.genuinePersonProbability = _clamp(100 - average)

    # ── scoring ─────────────────────────────────────────────────────────

    def _trust_score(self, result: ComprehensiveVerificationResult) -> float:
        facial = result.facialVerification
        digital = result.digitalFootprint

        face_score = (
            facial.consistencyAcrossPhotos
            + (100 - facial.deepfakeProbability)
            + (100 - facial.professionalModelLikelihood)
        ) / 3
        digital_score = (
            digital.socialMediaAuthenticity
            + min(100.0, digital.webPresenceDepth * 20)
            + digital.crossPlatformConsistency
        ) / 3

        score = (
            (100 - result.catfishAnalysis.overallRiskScore) * self.WEIGHT_IMAGE
            + result.behavioralAnalysis.authenticityScore * self.WEIGHT_BEHAVIOR
            + result.profileVerification.profileLegitimacy * self.WEIGHT_PROFILE
            + face_score * self.WEIGHT_FACIAL
            + digital_score * self.WEIGHT_DIGITAL
        )
        score -= len(result.criticalWarnings) * self.WARNING_PENALTY
        score -= len(result.immediateThreats) * self.THREAT_PENALTY
        return _clamp(score)

    # ── recommendations and threats ─────────────────────────────────────

    @staticmethod
    def _recommendations(result: ComprehensiveVerificationResult) -> None:
        steps = result.verificationSteps
        if result.facialVerification.consistencyAcrossPhotos < 70:
            steps.append("Request a live video call with specific gestures or poses")
            steps.append("Ask for a selfie with today's newspaper or specific sign")
        if result.digitalFootprint.socialMediaAuthenticity < 50:
            steps.append("Verify social media profiles by checking tagged photos by others")
            steps.append("Look for mutual friends or connections")
        if result.conversationIntelligence.languageAuthenticity < 60:
            steps.append("Test with local cultural references or slang")
            steps.append("Ask spontaneous questions that require immediate responses")

        advice = result.conversationRecommendations
        if result.likelihoodAssessments.scammerProbability > 50:
            advice.append("Avoid sharing personal information (address, workplace, financial details)")
            advice.append("Be wary of emotional manipulation tactics")
            advice.append("Never send money, gift cards, or financial assistance")
        if result.likelihoodAssessments.catfishProbability > 60:
            advice.append("Insist on video calls before developing emotional attachment")
            advice.append("Ask for verification photos with specific requirements")
            advice.append("Be cautious of reasons for avoiding face-to-face contact")

        result.protectionMeasures.extend(BASELINE_PROTECTION)
        if result.riskLevel in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            result.protectionMeasures.extend(HIGH_RISK_PROTECTION)

        if result.scammerProfile is not None:
            result.safetyRecommendations.extend(result.scammerProfile.countermeasures)

    @staticmethod
    def _threat_sweep(result: ComprehensiveVerificationResult) -> None:
        flags = result.behavioralAnalysis.behavioralRedFlags
        threats = result.immediateThreats

        def has_indicator(prefix: str) -> bool:
            return any(ind.startswith(prefix) for flag in flags for ind in flag.indicators)

        if has_indicator(MONEY_INDICATOR):
            threats.append(FINANCIAL_ALERT)

        sextortion_profile = result.scammerProfile is not None and result.scammerProfile.scammerType == "sextortion"
        sextortion_flag = any(f.patternType == "sextortion" and f.severity == Severity.CRITICAL for f in flags)
        if sextortion_profile or sextortion_flag:
            threats.append(SEXTORTION_ALERT)

        if has_indicator(INFO_INDICATOR):
            threats.append(IDENTITY_ALERT)

        if result.facialVerification.deepfakeProbability > 70:
            threats.append(DEEPFAKE_ALERT)

        if result.likelihoodAssessments.catfishProbability > 80:
            threats.append(CATFISH_ALERT)

