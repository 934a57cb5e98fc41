"""
photo.py - Photo Forensics Analyzer
====================================

Builds a CatfishAnalysis from a list of profile photo references.

Per photo (run concurrently, merged back in input order):
    1. Metadata   - camera, editing software, GPS, capture timestamp (EXIF)
    2. Quality    - upscaling, professional-shot likelihood, JPEG compression
    3. Reverse    - reverse image search hits, categorised by source
    4. Faces      - face count, age/gender estimates, deepfake probability

Across photos:
    face match ratio, lighting and background consistency, age progression,
    age/gender consistency (also against the stated profile age).

Risk score:
    30  face match measured and below 60
    20  professional likelihood above 80
    40  deepfake probability above 70
    10  per reverse search hit
    15  upscaling detected
    20  editing software detected
    (clamped to 100; authenticity = 100 - risk)

Signals with no backing provider are listed in unavailableSignals.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from itertools import combinations
from statistics import pstdev
from typing import Any, Dict, List, Optional, Sequence

from datesafe import config
from datesafe.errors import MalformedInput
from datesafe.models import CatfishAnalysis, ProfileData, ReverseSearchMatch
from datesafe.providers import (
    FaceAnalysisProvider,
    ImageMetadataProvider,
    ReverseImageSearchProvider,
)

logger = logging.getLogger(__name__)

EDITING_SOFTWARE = ("Photoshop", "GIMP", "FaceApp", "Lightroom", "Facetune", "Snapseed", "Meitu")

# Largest possible distance between two RGB colours
_MAX_RGB_DISTANCE = math.sqrt(3 * 255 ** 2)


@dataclass
class PhotoObservation:
    """Everything learned about one photo before merging."""
    ref: str
    metadata: Optional[Dict[str, Any]] = None
    faces: Optional[List[Dict[str, Any]]] = None
    reverse_hits: List[Dict[str, Any]] = field(default_factory=list)
    red_flags: List[str] = field(default_factory=list)
    failed: bool = False


class PhotoSignalProvider:
    """Photo forensics over injected image, face and reverse-search providers."""

    FACE_MATCH_DISTANCE: float = 0.6
    FACE_MATCH_MIN: float = 60.0
    AGE_SPREAD_MAX: float = 10.0
    UPSCALE_MIN_PIXELS: int = 2_000_000
    UPSCALE_MAX_SHARPNESS: float = 0.3
    COMPRESSION_QUANT_MEAN: float = 10.0
    REVERSE_SEARCH_LIMIT: int = 10

    def __init__(
        self,
        image_inspector: ImageMetadataProvider,
        face_analyzer: Optional[FaceAnalysisProvider] = None,
        reverse_search: Optional[ReverseImageSearchProvider] = None,
        max_workers: int = config.MAX_WORKERS,
    ) -> None:
        self._inspector = image_inspector
        self._faces = face_analyzer
        self._reverse = reverse_search
        self._max_workers = max(1, max_workers)

    # ── public API ──────────────────────────────────────────────────────

    def analyze(self, photos: Sequence[str], profile_data: Optional[ProfileData] = None) -> CatfishAnalysis:
        analysis = CatfishAnalysis()
        analysis.unavailableSignals = self._unavailable_signals()
        if not photos:
            return analysis

        workers = min(self._max_workers, len(photos))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="photo") as pool:
            observations = list(pool.map(self._observe, photos))

        for observation in observations:
            self._merge(observation, analysis)

        self._cross_photo(observations, analysis, profile_data)

        if self._faces is not None and not any(
            "deepfakeProbability" in face for obs in observations for face in (obs.faces or [])
        ):
            analysis.unavailableSignals.append("deepfake_detection")

        analysis.overallRiskScore = self._risk_score(analysis, self._face_match_measured(observations))
        analysis.authenticityScore = 100.0 - analysis.overallRiskScore

        logger.info(
            f"Photos analysed: count={len(photos)} risk={analysis.overallRiskScore:.0f} "
            f"redFlags={len(analysis.redFlags)}"
        )
        return analysis

    # ── per photo ───────────────────────────────────────────────────────

    def _observe(self, ref: str) -> PhotoObservation:
        observation = PhotoObservation(ref=ref)

        try:
            observation.metadata = self._inspector.inspect(ref)
        except MalformedInput as exc:
            logger.warning(f"Photo reference rejected: {exc}")
            observation.failed = True
            observation.red_flags.append(f"Photo rejected - {exc.reason}")
            return observation
        except Exception as exc:
            logger.warning(f"Image inspection failed for {ref!r}: {exc}")
            observation.failed = True
            observation.red_flags.append("Photo analysis failed - potentially corrupted or fake")
            return observation

        if self._reverse is not None:
            try:
                observation.reverse_hits = list(self._reverse.search(ref))[: self.REVERSE_SEARCH_LIMIT]
            except Exception as exc:
                logger.warning(f"Reverse image search failed for {ref!r}: {exc}")
                observation.red_flags.append("Reverse image search failed - photo origin unverified")

        if self._faces is not None:
            try:
                observation.faces = list(self._faces.detect(ref))
            except Exception as exc:
                logger.warning(f"Face analysis failed for {ref!r}: {exc}")
                observation.red_flags.append("Face analysis failed - face could not be verified")

        return observation

    def _merge(self, observation: PhotoObservation, analysis: CatfishAnalysis) -> None:
        analysis.redFlags.extend(observation.red_flags)
        if observation.failed or observation.metadata is None:
            return

        self._merge_metadata(observation.metadata, analysis)
        self._merge_quality(observation.metadata, analysis)

        for hit in observation.reverse_hits:
            match = ReverseSearchMatch(
                url=hit["url"],
                context=hit.get("title") or "Unknown",
                sourceType=categorize_image_source(hit["url"], hit.get("title", "")),
            )
            analysis.imageForensics.reverseSearchMatches.append(match)
            if match.sourceType in ("stock_photo", "model_portfolio"):
                analysis.redFlags.append(f"Image found on {match.sourceType}: {match.url}")

        if observation.faces is not None:
            face_analysis = analysis.faceAnalysis
            face_analysis.facesDetected += len(observation.faces)
            if observation.faces:
                deepfake = observation.faces[0].get("deepfakeProbability")
                if deepfake is not None:
                    face_analysis.deepfakeProbability = max(face_analysis.deepfakeProbability, float(deepfake))
                    if float(deepfake) > 70:
                        analysis.redFlags.append("High probability of AI-generated/deepfake image")

    @staticmethod
    def _merge_metadata(metadata: Dict[str, Any], analysis: CatfishAnalysis) -> None:
        exif = metadata.get("exif") or {}
        meta = analysis.imageForensics.metadataAnalysis

        if exif.get("Make") and exif.get("Model"):
            camera = f"Camera: {exif['Make']} {exif['Model']}"
            if camera not in meta.timestampAnalysis:
                meta.timestampAnalysis.append(camera)

        software = str(exif.get("Software") or "")
        if software and any(name.lower() in software.lower() for name in EDITING_SOFTWARE):
            meta.editingSoftwareDetected.append(software)
            analysis.redFlags.append(f"Heavy photo editing detected: {software}")

        if exif.get("GPSLatitude") and exif.get("GPSLongitude"):
            lat = dms_to_decimal(exif["GPSLatitude"], exif.get("GPSLatitudeRef", "N"))
            lon = dms_to_decimal(exif["GPSLongitude"], exif.get("GPSLongitudeRef", "E"))
            analysis.photoPatterns.backgroundAnalysis.append(f"GPS: {lat:.5f}, {lon:.5f}")

        if exif.get("DateTimeOriginal"):
            meta.timestampAnalysis.append(f"Taken: {exif['DateTimeOriginal']}")

    def _merge_quality(self, metadata: Dict[str, Any], analysis: CatfishAnalysis) -> None:
        width = int(metadata.get("width") or 0)
        height = int(metadata.get("height") or 0)
        technical = analysis.imageForensics.technicalIndicators

        sharpness = metadata.get("sharpness")
        if width * height > self.UPSCALE_MIN_PIXELS and sharpness is not None and sharpness < self.UPSCALE_MAX_SHARPNESS:
            if not technical.upscalingDetected:
                analysis.redFlags.append("Image appears to be artificially upscaled")
            technical.upscalingDetected = True

        professional = professional_photo_score(metadata.get("dynamicRange"), width, height)
        face_analysis = analysis.faceAnalysis
        face_analysis.professionalPhotoLikelihood = max(face_analysis.professionalPhotoLikelihood, professional)
        if professional > 80:
            analysis.redFlags.append("Photos appear to be professional/model shots")

        quantization = metadata.get("quantizationMean")
        if quantization is not None and quantization > self.COMPRESSION_QUANT_MEAN:
            technical.compressionArtifacts = True

    # ── across photos ───────────────────────────────────────────────────

    def _cross_photo(
        self,
        observations: List[PhotoObservation],
        analysis: CatfishAnalysis,
        profile_data: Optional[ProfileData],
    ) -> None:
        inspected = [o for o in observations if not o.failed and o.metadata is not None]
        patterns = analysis.photoPatterns
        meta = analysis.imageForensics.metadataAnalysis

        cameras = {
            (o.metadata["exif"].get("Make"), o.metadata["exif"].get("Model"))
            for o in inspected
            if (o.metadata.get("exif") or {}).get("Make")
        }
        if len(cameras) > 1:
            meta.cameraConsistency = False

        if len(inspected) > 1:
            luminance = [float(o.metadata["luminanceMean"]) for o in inspected if o.metadata.get("luminanceMean") is not None]
            if len(luminance) > 1:
                patterns.lightingConsistency = max(0.0, min(100.0, 100.0 - 2.0 * pstdev(luminance)))

            borders = [o.metadata["borderColor"] for o in inspected if o.metadata.get("borderColor")]
            if len(borders) > 1:
                distances = [math.dist(a, b) for a, b in combinations(borders, 2)]
                average = sum(distances) / len(distances)
                patterns.backgroundConsistency = max(0.0, 100.0 - average / _MAX_RGB_DISTANCE * 100.0)
                if patterns.backgroundConsistency < 40:
                    patterns.backgroundAnalysis.append("Backgrounds differ strongly between photos")

        if self._face_match_measured(observations):
            ratio = self._face_match_ratio(observations)
            analysis.faceAnalysis.faceMatchAcrossPhotos = ratio
            if ratio < self.FACE_MATCH_MIN:
                analysis.redFlags.append("Faces appear to be different people across photos")

        self._age_and_gender(observations, analysis, profile_data)

    def _face_match_measured(self, observations: List[PhotoObservation]) -> bool:
        return len(self._first_descriptors(observations)) > 1

    @staticmethod
    def _first_descriptors(observations: List[PhotoObservation]) -> List[List[float]]:
        return [
            list(o.faces[0]["descriptor"])
            for o in observations
            if o.faces and o.faces[0].get("descriptor")
        ]

    def _face_match_ratio(self, observations: List[PhotoObservation]) -> float:
        descriptors = self._first_descriptors(observations)
        pairs = list(combinations(descriptors, 2))
        matches = sum(1 for a, b in pairs if math.dist(a, b) < self.FACE_MATCH_DISTANCE)
        return matches / len(pairs) * 100.0

    def _age_and_gender(
        self,
        observations: List[PhotoObservation],
        analysis: CatfishAnalysis,
        profile_data: Optional[ProfileData],
    ) -> None:
        first_faces = [o.faces[0] for o in observations if o.faces]
        ages = [float(f["age"]) for f in first_faces if f.get("age") is not None]
        genders = {str(f["gender"]).lower() for f in first_faces if f.get("gender")}
        face_analysis = analysis.faceAnalysis

        if len(ages) > 1 and max(ages) - min(ages) > self.AGE_SPREAD_MAX:
            face_analysis.ageConsistency = False
            analysis.photoPatterns.photoProgressionNatural = False
            analysis.redFlags.append("Unnatural age progression across photos")

        if len(genders) > 1:
            face_analysis.genderConsistency = False
            analysis.redFlags.append("Estimated gender differs across photos")

        if profile_data is not None and profile_data.age is not None and ages:
            if any(abs(age - profile_data.age) > self.AGE_SPREAD_MAX for age in ages):
                face_analysis.ageConsistency = False
                analysis.redFlags.append(
                    f"Apparent age in photos does not match stated age {profile_data.age}"
                )

    # ── scoring ─────────────────────────────────────────────────────────

    def _unavailable_signals(self) -> List[str]:
        missing = ["noise_pattern_analysis"]
        if self._faces is None:
            missing += ["face_analysis", "deepfake_detection"]
        if self._reverse is None:
            missing.append("reverse_image_search")
        return missing

    def _risk_score(self, analysis: CatfishAnalysis, face_match_measured: bool) -> float:
        face = analysis.faceAnalysis
        forensics = analysis.imageForensics

        risk = 0.0
        if face_match_measured and face.faceMatchAcrossPhotos < self.FACE_MATCH_MIN:
            risk += 30
        if face.professionalPhotoLikelihood > 80:
            risk += 20
        if face.deepfakeProbability > 70:
            risk += 40
        risk += 10 * len(forensics.reverseSearchMatches)
        if forensics.technicalIndicators.upscalingDetected:
            risk += 15
        if forensics.metadataAnalysis.editingSoftwareDetected:
            risk += 20
        return max(0.0, min(100.0, risk))


# ═══════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════

def dms_to_decimal(dms: Sequence[float], ref: str) -> float:
    """EXIF (degrees, minutes, seconds) to signed decimal degrees."""
    degrees = float(dms[0]) + float(dms[1]) / 60.0 + float(dms[2]) / 3600.0
    if str(ref).upper() in ("S", "W"):
        degrees = -degrees
    return degrees


def professional_photo_score(dynamic_range: Optional[float], width: int, height: int) -> float:
    score = 0.0
    if dynamic_range is not None and dynamic_range > 0.8:
        score += 30
    if width and height:
        aspect = width / height
        # 3:2 landscape or 2:3 portrait
        if abs(aspect - 1.5) < 0.1 or abs(aspect - 0.67) < 0.1:
            score += 20
    return score


def categorize_image_source(url: str, title: str = "") -> str:
    url_lower = url.lower()
    title_lower = (title or "").lower()

    if "shutterstock" in url_lower or "getty" in url_lower or "stock" in url_lower:
        return "stock_photo"
    if "model" in url_lower or "model" in title_lower:
        return "model_portfolio"
    if "instagram.com" in url_lower or "facebook.com" in url_lower:
        return "social_media"
    if "xxx" in url_lower or "porn" in url_lower or "adult" in url_lower:
        return "adult_content"
    return "unknown"
