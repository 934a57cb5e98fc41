"""Builds the summary payloads returned by the quick-analysis endpoints and
the export report. Every builder takes a finished ComprehensiveVerificationResult;
none of them run analysis themselves."""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from datesafe.models import (
    ComprehensiveVerificationResult,
    ConversationSummary,
    ExportReport,
    PhotoSummary,
    RiskLevel,
    SafetyCheckRequest,
    SafetyCheckResult,
    VerificationRequest,
)

logger = logging.getLogger(__name__)


def build_photo_summary(result: ComprehensiveVerificationResult) -> PhotoSummary:
    """Condensed photo verdict with a HIGH / MEDIUM / LOW recommendation."""
    risk = result.catfishAnalysis.overallRiskScore
    if risk > 70:
        recommendation = "HIGH RISK - Strong catfish indicators detected"
    elif risk > 40:
        recommendation = "MEDIUM RISK - Some suspicious indicators"
    else:
        recommendation = "LOW RISK - Photos appear authentic"

    if risk > 70:
        logger.warning(f"High catfish risk detected: {risk:.0f}%")

    return PhotoSummary(
        catfishRisk=risk,
        faceConsistency=result.facialVerification.consistencyAcrossPhotos,
        deepfakeProbability=result.facialVerification.deepfakeProbability,
        professionalLikelihood=result.facialVerification.professionalModelLikelihood,
        reverseSearchHits=len(result.catfishAnalysis.imageForensics.reverseSearchMatches),
        redFlags=list(result.catfishAnalysis.redFlags),
        recommendation=recommendation,
    )


def build_conversation_summary(result: ComprehensiveVerificationResult) -> ConversationSummary:
    profile = result.scammerProfile
    likelihoods = result.likelihoodAssessments

    if likelihoods.scammerProbability > 70:
        logger.warning(f"High scammer probability: {likelihoods.scammerProbability:.0f}%")

    return ConversationSummary(
        authenticityScore=result.behavioralAnalysis.authenticityScore,
        scammerProbability=likelihoods.scammerProbability,
        botProbability=likelihoods.botProbability,
        emotionalManipulation=result.conversationIntelligence.emotionalManipulationDetected,
        languageAuthenticity=result.conversationIntelligence.languageAuthenticity,
        scammerType=profile.scammerType if profile else None,
        redFlags=list(result.behavioralAnalysis.behavioralRedFlags),
        immediateThreats=list(result.immediateThreats),
        safetyRecommendations=list(result.safetyRecommendations),
        nextLikelyMoves=list(profile.nextLikelyMoves) if profile else [],
        countermeasures=list(profile.countermeasures) if profile else [],
    )


def safety_check_request(check: SafetyCheckRequest) -> VerificationRequest:
    """Translate the safety-check payload into a full verification request."""
    return VerificationRequest(
        photos=check.photos,
        profileUrls=check.socialLinks,
        profileData=check.profile,
        context=check.context,
    )


def build_safety_check(result: ComprehensiveVerificationResult) -> SafetyCheckResult:
    """Safe above 60, continue above 40, emergency stop on critical risk or any threat."""
    emergency = result.riskLevel == RiskLevel.CRITICAL or len(result.immediateThreats) > 0
    if emergency:
        logger.warning(
            f"CRITICAL SAFETY ALERT trust={result.overallTrustScore:.0f} "
            f"threats={len(result.immediateThreats)}"
        )

    return SafetyCheckResult(
        isSafe=result.overallTrustScore > 60,
        trustScore=result.overallTrustScore,
        riskLevel=result.riskLevel,
        criticalWarnings=list(result.criticalWarnings),
        immediateThreats=list(result.immediateThreats),
        verificationNeeded=list(result.verificationSteps),
        protectionMeasures=list(result.protectionMeasures),
        shouldContinue=result.overallTrustScore > 40,
        emergencyStop=emergency,
    )


def failed_safety_check() -> SafetyCheckResult:
    """Conservative answer used when the check itself could not run."""
    return SafetyCheckResult(
        isSafe=False,
        trustScore=0.0,
        riskLevel=RiskLevel.CRITICAL,
        criticalWarnings=["Safety check failed - exercise extreme caution"],
        immediateThreats=["Unable to verify profile safety"],
        verificationNeeded=["Manual verification required"],
        protectionMeasures=["Do not share personal information", "Do not send money"],
        shouldContinue=False,
        emergencyStop=True,
    )


def build_export_report(
    result: ComprehensiveVerificationResult,
    now: Optional[datetime] = None,
) -> ExportReport:
    exported_at = now or datetime.now(timezone.utc)
    return ExportReport(
        exportDate=exported_at.isoformat(),
        verificationResult=result,
        summary={
            "trustScore": result.overallTrustScore,
            "riskLevel": result.riskLevel.value,
            "criticalWarnings": len(result.criticalWarnings),
            "immediateThreats": len(result.immediateThreats),
            "catfishProbability": result.likelihoodAssessments.catfishProbability,
            "scammerProbability": result.likelihoodAssessments.scammerProbability,
        },
    )


def report_filename(report: ExportReport) -> str:
    return f"verification-report-{report.exportDate[:10]}.json"


def save_report(report: ExportReport, directory: str) -> str:
    """Write the report as indented JSON into `directory`; returns the file path."""
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, report_filename(report))
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(report.model_dump(mode="json"), fh, indent=2, default=str)
    logger.info(f"Verification report saved to {path}")
    return path
