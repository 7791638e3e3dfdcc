from __future__ import annotations

"""
StreamVault — Content classification
====================================

`ClassificationAnalyzer.classify(display_name) -> Verdict`

`KeywordAnalyzer` is the built-in, simulated classifier:

1) case-insensitive substring match against the disallowed-term list; the
   first configured term that matches flags the artifact and is named in the
   reason
2) otherwise a probabilistic decision (`flag_rate`) drawn from an injected
   `random.Random`, so tests can seed it

A different implementation can be plugged in with `ANALYZER_IMPL="pkg.mod:Class"`
(constructed without arguments).
"""

import asyncio
import importlib
import logging
import random
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from app.core.config import settings
from app.schemas.enums import VerdictKind

logger = logging.getLogger(__name__)

GENERIC_FLAG_REASON = "Automated analysis detected potential content issues"


@dataclass(frozen=True)
class Verdict:
    kind: VerdictKind
    reason: Optional[str] = None

    @property
    def flagged(self) -> bool:
        return self.kind == VerdictKind.FLAGGED

    @classmethod
    def safe(cls) -> "Verdict":
        return cls(VerdictKind.SAFE)

    @classmethod
    def flag(cls, reason: str) -> "Verdict":
        return cls(VerdictKind.FLAGGED, reason)


class ClassificationAnalyzer(Protocol):
    async def classify(self, display_name: str) -> Verdict: ...


class KeywordAnalyzer:
    def __init__(
        self,
        terms: Optional[Iterable[str]] = None,
        *,
        flag_rate: Optional[float] = None,
        rng: Optional[random.Random] = None,
        delay_seconds: Optional[float] = None,
    ) -> None:
        self.terms = [t.lower() for t in (settings.disallowed_terms if terms is None else terms) if t]
        self.flag_rate = settings.PIPELINE_RANDOM_FLAG_RATE if flag_rate is None else flag_rate
        self.rng = rng or random.Random(settings.PIPELINE_RANDOM_SEED)
        self.delay_seconds = settings.ANALYZER_SIMULATED_DELAY_SECONDS if delay_seconds is None else delay_seconds

    def match_term(self, display_name: str) -> Optional[str]:
        name = (display_name or "").lower()
        for term in self.terms:
            if term in name:
                return term
        return None

    async def classify(self, display_name: str) -> Verdict:
        term = self.match_term(display_name)
        if term is not None:
            return Verdict.flag(f'Disallowed term detected: "{term}"')

        # Simulated scan
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)

        if self.rng.random() < self.flag_rate:
            return Verdict.flag(GENERIC_FLAG_REASON)
        return Verdict.safe()


def load_analyzer(path: Optional[str] = None) -> ClassificationAnalyzer:
    """Build the configured analyzer (`module:Class`), defaulting to `KeywordAnalyzer`."""
    path = path or settings.ANALYZER_IMPL
    if not path:
        return KeywordAnalyzer()
    module_name, _, attr = path.partition(":")
    if not attr:
        module_name, _, attr = path.rpartition(".")
    cls = getattr(importlib.import_module(module_name), attr)
    logger.info("Using analyzer %s", path)
    return cls()


__all__ = [
    "Verdict",
    "ClassificationAnalyzer",
    "KeywordAnalyzer",
    "GENERIC_FLAG_REASON",
    "load_analyzer",
]
