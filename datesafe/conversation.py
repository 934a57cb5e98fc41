"""
conversation.py - Conversational Behavior Analyzer
===================================================

Scores a chronological chat transcript for signs of a scammer, catfish or
bot on the match's side. Four analysis layers feed one authenticity score:

    1. Timing      - reply latency to the user, variance, night-hour activity
    2. Language    - grammar, vocabulary, non-native phrasing, copy-paste, scripts
    3. Emotional   - love bombing, manipulation, sympathy seeking, crisis stories
    4. Archetypes  - regex tables per scammer archetype, money and info requests

Scoring mechanics:
    - Authenticity starts at 70 and is adjusted by each layer
    - Every BehavioralPattern subtracts confidence x severity weight
    - The risk assessment is derived from the score and flag severities

All phrase and regex tables come from the PatternRegistry, so tests and
deployments can swap the tables without touching this module.

Message order is significant and is never changed here.
"""

import logging
import re
from itertools import combinations
from statistics import mean, pvariance
from typing import List, Optional, Sequence

from rapidfuzz.distance import Levenshtein

from datesafe.models import (
    BehavioralPattern,
    ConversationAnalysis,
    Message,
    ScammerProfile,
    Severity,
)
from datesafe.patterns import ARCHETYPE_PREFIX, SCORING_PREFIX, Pattern, PatternRegistry

logger = logging.getLogger(__name__)


class ConversationSignalProvider:
    """Analyses the match side of a conversation against the pattern registry."""

    BASE_AUTHENTICITY: float = 70.0

    # Penalty multiplier applied to a flag's confidence, per severity
    SEVERITY_WEIGHTS = {
        Severity.CRITICAL: 0.8,
        Severity.HIGH: 0.6,
        Severity.MEDIUM: 0.4,
        Severity.LOW: 0.2,
    }

    NIGHT_HOURS = frozenset(list(range(22, 24)) + list(range(0, 7)))
    WORK_HOURS = frozenset(range(9, 18))

    SIMILARITY_THRESHOLD: float = 0.8
    SIMILAR_PAIR_POINTS: float = 20.0
    SCRIPT_OCCURRENCE_POINTS: float = 10.0
    # Pairwise similarity is quadratic; only this many match messages are compared
    COPY_PASTE_MAX_MESSAGES: int = 100

    LOVE_BOMB_WINDOW: int = 10
    LOVE_BOMB_MIN_WORDS: int = 3
    MIN_MESSAGES_FOR_EMOTION: int = 5

    MONEY_REQUEST_CONFIDENCE: float = 90.0
    INFO_REQUEST_CONFIDENCE: float = 70.0

    def __init__(self, registry: PatternRegistry) -> None:
        self._registry = registry

    # ── public API ──────────────────────────────────────────────────────

    def analyze(self, messages: Sequence[Message]) -> ConversationAnalysis:
        """Run all layers and return the scored ConversationAnalysis."""
        analysis = ConversationAnalysis()

        self._analyze_timing(messages, analysis)
        self._analyze_language(messages, analysis)
        self._analyze_emotions(messages, analysis)
        self._detect_archetypes(messages, analysis)

        analysis.authenticityScore = self._authenticity_score(analysis)
        analysis.riskAssessment = self._risk_assessment(analysis)

        logger.info(
            f"Conversation analysed: messages={len(messages)} "
            f"flags={len(analysis.behavioralRedFlags)} "
            f"authenticity={analysis.authenticityScore:.1f} risk={analysis.riskAssessment}"
        )
        return analysis

    def detect_scammer_type(self, messages: Sequence[Message]) -> Optional[ScammerProfile]:
        """Return the best-scoring scammer archetype above its threshold, or None.

        When several archetypes clear their thresholds the highest score wins;
        equal scores fall back to registry order.
        """
        text = " ".join(m.content.lower() for m in messages if m.sender == "match")
        if not text.strip():
            return None

        best_type: Optional[str] = None
        best_score = 0.0
        for archetype in self._registry.scoring_archetypes():
            threshold = self._registry.threshold(archetype)
            if threshold is None:
                continue
            score = min(100.0, self._score_layer(text, self._registry.category(SCORING_PREFIX + archetype)))
            if score > threshold and score > best_score:
                best_type, best_score = archetype, score

        if best_type is None:
            return None

        template = self._registry.profile(best_type)
        logger.info(f"Scammer archetype detected: {best_type} score={best_score:.0f}")
        return ScammerProfile(
            scammerType=best_type,
            confidenceLevel=best_score,
            typicalPatterns=list(template.typicalPatterns),
            nextLikelyMoves=list(template.nextLikelyMoves),
            countermeasures=list(template.countermeasures),
        )

    # ── layer 1: timing ─────────────────────────────────────────────────

    def _analyze_timing(self, messages: Sequence[Message], analysis: ConversationAnalysis) -> None:
        match_count = sum(1 for m in messages if m.sender == "match")
        user_count = sum(1 for m in messages if m.sender == "user")
        if match_count < 2 or user_count < 2:
            return

        timing = analysis.messagePatterns.responseTimeAnalysis
        response_times: List[float] = []
        reply_hours: List[int] = []

        for prev, current in zip(messages, messages[1:]):
            if prev.sender == "user" and current.sender == "match":
                minutes = (current.timestamp - prev.timestamp).total_seconds() / 60.0
                response_times.append(minutes)
                reply_hours.append(current.timestamp.hour)

        if response_times:
            timing.averageResponseTime = mean(response_times)

        variance = pvariance(response_times) if response_times else 0.0
        timing.consistencyScore = max(0.0, 100.0 - variance / 60.0)

        night = sum(1 for h in reply_hours if h in self.NIGHT_HOURS)
        work = sum(1 for h in reply_hours if h in self.WORK_HOURS)

        if night > work * 1.5:
            timing.suspiciousTiming = True
            timing.timezoneIndicators.append(
                "Primarily active during night hours - possible different timezone"
            )

        if variance < 5 and len(response_times) > 10:
            timing.suspiciousTiming = True
            timing.timezoneIndicators.append(
                "Unnaturally consistent response times - possible automation"
            )

    # ── layer 2: language ───────────────────────────────────────────────

    def _analyze_language(self, messages: Sequence[Message], analysis: ConversationAnalysis) -> None:
        originals = [m.content for m in messages if m.sender == "match"]
        if not originals:
            return

        lowered = [text.lower() for text in originals]
        all_text = " ".join(lowered)
        language = analysis.messagePatterns.languageAnalysis

        language.grammarConsistency = self._grammar_consistency(originals)
        language.vocabularySophistication = self._vocabulary_sophistication(all_text)

        non_native = min(
            100.0,
            self._score_layer(all_text, self._registry.category("language.non_native"))
            + self._score_layer(all_text, self._registry.category("language.non_native_bonus")),
        )
        language.nativeSpeakerProbability = 100.0 - non_native
        language.copyPasteLikelihood = self._copy_paste_likelihood(lowered)
        language.scriptFollowingProbability = min(
            100.0, self._score_layer(all_text, self._registry.category("language.script"))
        )

    @staticmethod
    def _grammar_consistency(messages: List[str]) -> float:
        total_sentences = 0
        errors = 0
        for message in messages:
            sentences = [s.strip() for s in re.split(r"[.!?]+", message) if s.strip()]
            total_sentences += len(sentences)
            for sentence in sentences:
                if not sentence[0].isupper():
                    errors += 1
                if re.search(r"\bi am\b", sentence):
                    errors += 1
                if re.search(r"\byour\b.*\byour\b", sentence, re.IGNORECASE):
                    errors += 1

        if total_sentences == 0:
            return 100.0
        return max(0.0, 100.0 - (errors / total_sentences) * 100.0)

    def _vocabulary_sophistication(self, text: str) -> float:
        words = text.split()
        if not words:
            return 50.0
        sophisticated = self._registry.category("language.sophisticated")
        hits = sum(1 for p in sophisticated if p.search(text))
        diversity = len(set(words)) / len(words)
        share = hits / len(sophisticated) if sophisticated else 0.0
        return min(100.0, share * 50.0 + diversity * 50.0)

    def _copy_paste_likelihood(self, messages: List[str]) -> float:
        if len(messages) < 2:
            return 0.0

        score = 0.0
        for first, second in combinations(messages[: self.COPY_PASTE_MAX_MESSAGES], 2):
            if Levenshtein.normalized_similarity(first, second) > self.SIMILARITY_THRESHOLD:
                score += self.SIMILAR_PAIR_POINTS

        for phrase in self._registry.category("language.script"):
            score += self.SCRIPT_OCCURRENCE_POINTS * sum(1 for m in messages if phrase.search(m))

        return min(100.0, score)

    # ── layer 3: emotional progression ──────────────────────────────────

    def _analyze_emotions(self, messages: Sequence[Message], analysis: ConversationAnalysis) -> None:
        match_texts = [m.content.lower() for m in messages if m.sender == "match"]
        if len(match_texts) < self.MIN_MESSAGES_FOR_EMOTION:
            return

        emotional = analysis.messagePatterns.emotionalPatterns

        love_words = self._registry.category("emotional.love")
        early = match_texts[: min(self.LOVE_BOMB_WINDOW, len(match_texts))]
        early_love = sum(1 for text in early for word in love_words if word.search(text))

        if early_love > self.LOVE_BOMB_MIN_WORDS:
            emotional.loveBombingDetected = True
            emotional.emotionalProgressionNatural = False
            analysis.behavioralRedFlags.append(BehavioralPattern(
                patternType="scammer",
                confidence=80,
                indicators=["Love bombing detected - premature intense emotional language"],
                severity=Severity.HIGH,
            ))

        manipulation = self._registry.category("emotional.manipulation")
        emotional.emotionalManipulationScore = min(
            100.0, sum(self._score_layer(text, manipulation) for text in match_texts)
        )

        sympathy = self._registry.category("emotional.sympathy")
        emotional.sympathySeekingFrequency = sum(
            1 for text in match_texts for keyword in sympathy if keyword.search(text)
        )

        emotional.crisisFabricationLikelihood = self._crisis_likelihood(match_texts)

    def _crisis_likelihood(self, messages: List[str]) -> float:
        crisis_patterns = self._registry.category("emotional.crisis")
        score = 0.0
        crisis_messages = 0
        for text in messages:
            message_score = self._score_layer(text, crisis_patterns)
            if message_score > 0:
                crisis_messages += 1
                score += message_score

        if crisis_messages > len(messages) * 0.3:
            score += 30
        return min(100.0, score)

    # ── layer 4: archetypes and explicit requests ───────────────────────

    def _detect_archetypes(self, messages: Sequence[Message], analysis: ConversationAnalysis) -> None:
        match_texts = [m.content for m in messages if m.sender == "match"]
        all_text = " ".join(match_texts).lower()

        for archetype in self._registry.archetypes():
            patterns = self._registry.category(ARCHETYPE_PREFIX + archetype)
            matched = [p.id for p in patterns if p.search(all_text)]
            if not matched:
                continue
            confidence = min(95.0, len(matched) / len(patterns) * 100.0 + 20.0)
            analysis.behavioralRedFlags.append(BehavioralPattern(
                patternType=archetype,
                confidence=confidence,
                indicators=matched,
                severity=self._severity_for(confidence),
            ))

        money = self._request_indicators(match_texts, "request.money", "Money request detected")
        if money:
            analysis.behavioralRedFlags.append(BehavioralPattern(
                patternType="scammer",
                confidence=self.MONEY_REQUEST_CONFIDENCE,
                indicators=money,
                severity=Severity.CRITICAL,
            ))

        harvesting = self._request_indicators(match_texts, "request.information", "Information request detected")
        if harvesting:
            analysis.behavioralRedFlags.append(BehavioralPattern(
                patternType="scammer",
                confidence=self.INFO_REQUEST_CONFIDENCE,
                indicators=harvesting,
                severity=Severity.HIGH,
            ))

    def _request_indicators(self, messages: List[str], category: str, label: str) -> List[str]:
        """One indicator per (message, matching pattern) pair."""
        patterns = self._registry.category(category)
        return [
            f'{label}: "{text[:100]}..."'
            for text in messages
            for pattern in patterns
            if pattern.search(text)
        ]

    @staticmethod
    def _severity_for(confidence: float) -> Severity:
        if confidence > 70:
            return Severity.CRITICAL
        if confidence > 50:
            return Severity.HIGH
        return Severity.MEDIUM

    # ── scoring ─────────────────────────────────────────────────────────

    def _authenticity_score(self, analysis: ConversationAnalysis) -> float:
        language = analysis.messagePatterns.languageAnalysis
        emotional = analysis.messagePatterns.emotionalPatterns

        score = self.BASE_AUTHENTICITY
        score += (language.nativeSpeakerProbability - 50) * 0.3
        score -= language.copyPasteLikelihood * 0.4
        score -= language.scriptFollowingProbability * 0.3

        if emotional.loveBombingDetected:
            score -= 30
        score -= emotional.emotionalManipulationScore * 0.2
        score -= emotional.sympathySeekingFrequency * 5

        for flag in analysis.behavioralRedFlags:
            score -= flag.confidence * self.SEVERITY_WEIGHTS[flag.severity]

        return max(0.0, min(100.0, score))

    @staticmethod
    def _risk_assessment(analysis: ConversationAnalysis) -> str:
        flags = analysis.behavioralRedFlags
        critical = sum(1 for f in flags if f.severity == Severity.CRITICAL)
        high = sum(1 for f in flags if f.severity == Severity.HIGH)
        score = analysis.authenticityScore

        if critical > 0 or score < 20:
            return "very_high"
        if high > 1 or score < 40:
            return "high"
        if high > 0 or score < 60:
            return "medium"
        if score < 80:
            return "low"
        return "very_low"

    @staticmethod
    def _score_layer(text: str, patterns: List[Pattern]) -> float:
        """Sum weights of all matching patterns."""
        return sum(p.weight for p in patterns if p.search(text))
