"""
patterns.py - Versioned Pattern Registry
=========================================

Keyword and regex tables used by the conversation analyzer, loaded from a
JSON document instead of being hard-coded so they can be updated (or replaced
by fixture sets in tests) without code changes.

Document layout:
    {
      "version": "2024.06.1",
      "patterns": [{"id", "pattern", "weight", "category"}, ...],
      "thresholds": {"<archetype>": <score>},
      "profiles":   {"<archetype>": {"typicalPatterns", "nextLikelyMoves", "countermeasures"}}
    }

Category naming:
    archetype.<type>   - regexes counted for a BehavioralPattern per archetype
    scoring.<type>     - weighted regexes summed by detect_scammer_type()
    language.*         - non-native phrasing, script phrases, vocabulary
    emotional.*        - love words, manipulation, sympathy, crisis patterns
    request.*          - money and personal-information requests

All patterns compile case-insensitively. Category order in the document is
preserved and used as the tie-break order wherever archetypes compete.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PATH = Path(__file__).parent / "data" / "patterns.json"

ARCHETYPE_PREFIX = "archetype."
SCORING_PREFIX = "scoring."


class PatternEntrySchema(BaseModel):
    id: str
    pattern: str
    weight: float = 1.0
    category: str


class ScammerProfileTemplate(BaseModel):
    typicalPatterns: List[str] = Field(default_factory=list)
    nextLikelyMoves: List[str] = Field(default_factory=list)
    countermeasures: List[str] = Field(default_factory=list)


class RegistryDocument(BaseModel):
    version: str
    patterns: List[PatternEntrySchema] = Field(default_factory=list)
    thresholds: Dict[str, float] = Field(default_factory=dict)
    profiles: Dict[str, ScammerProfileTemplate] = Field(default_factory=dict)


@dataclass(frozen=True)
class Pattern:
    """A compiled registry entry."""
    id: str
    source: str
    weight: float
    category: str
    regex: "re.Pattern[str]"

    def search(self, text: str) -> bool:
        return self.regex.search(text) is not None


class PatternRegistry:
    """Read-only lookup over a validated, compiled registry document."""

    def __init__(self, document: RegistryDocument) -> None:
        self.version = document.version
        self._by_category: Dict[str, List[Pattern]] = {}
        seen_ids = set()
        for entry in document.patterns:
            if entry.id in seen_ids:
                raise ValueError(f"Duplicate pattern id in registry: {entry.id}")
            seen_ids.add(entry.id)
            try:
                compiled = re.compile(entry.pattern, re.IGNORECASE)
            except re.error as exc:
                raise ValueError(f"Invalid regex for pattern {entry.id}: {exc}") from exc
            self._by_category.setdefault(entry.category, []).append(
                Pattern(entry.id, entry.pattern, entry.weight, entry.category, compiled)
            )
        self._thresholds = dict(document.thresholds)
        self._profiles = dict(document.profiles)

    # ---- loading ----------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict) -> "PatternRegistry":
        try:
            document = RegistryDocument.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid pattern registry: {exc}") from exc
        return cls(document)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "PatternRegistry":
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        registry = cls.from_dict(data)
        logger.info(
            f"Loaded pattern registry v{registry.version} from {path} "
            f"({registry.pattern_count} patterns)"
        )
        return registry

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "PatternRegistry":
        """Load the registry at `path`, or the packaged default when empty."""
        return cls.from_file(path or DEFAULT_REGISTRY_PATH)

    # ---- lookup -----------------------------------------------------------

    @property
    def pattern_count(self) -> int:
        return sum(len(p) for p in self._by_category.values())

    def category(self, name: str) -> List[Pattern]:
        return list(self._by_category.get(name, []))

    def archetypes(self) -> List[str]:
        """Archetype names with a BehavioralPattern table, in document order."""
        return [
            name[len(ARCHETYPE_PREFIX):]
            for name in self._by_category
            if name.startswith(ARCHETYPE_PREFIX)
        ]

    def scoring_archetypes(self) -> List[str]:
        """Archetype names scored by detect_scammer_type, in document order."""
        return [
            name[len(SCORING_PREFIX):]
            for name in self._by_category
            if name.startswith(SCORING_PREFIX)
        ]

    def threshold(self, archetype: str) -> Optional[float]:
        return self._thresholds.get(archetype)

    def profile(self, archetype: str) -> ScammerProfileTemplate:
        return self._profiles.get(archetype, ScammerProfileTemplate())
