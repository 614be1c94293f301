"""
Fault diagnosis by signature matching.

The observed contribution vector is normalized to sum 1 and compared with
every fault signature in the library using cosine similarity. Each
signature gets a score in [0, 100] (one decimal) and the full list is
returned in descending order of score. Equal scores keep catalog order.

The engine is a pure function of its inputs: the same contribution vector
always produces the same ranking.

Example:
    >>> library = default_library()
    >>> contributions = decompose(snapshot, library.registry)
    >>> results = diagnose(contributions, library)
    >>> results[0].name, results[0].score
    ('Die Wear', 97.3)
"""

from dataclasses import dataclass
from typing import Mapping, List, Dict, Any, Iterable

import numpy as np

from .signatures import FaultSignature, SignatureLibrary, Severity


@dataclass(frozen=True)
class DiagnosisResult:
    """
    A fault hypothesis with its similarity score.

    Attributes:
        signature: Matched fault signature
        score: Cosine similarity × 100, rounded to one decimal
    """
    signature: FaultSignature
    score: float

    @property
    def name(self) -> str:
        return self.signature.name

    @property
    def severity(self) -> Severity:
        return self.signature.severity

    @property
    def confidence(self) -> float:
        """Score as a fraction in [0, 1]."""
        return self.score / 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "score": self.score,
            "severity": self.severity.name,
            "param": self.signature.param,
        }

    def __repr__(self) -> str:
        return f"DiagnosisResult({self.name!r}, score={self.score:.1f})"


def normalize(values: Mapping[str, float]) -> Dict[str, float]:
    """Divide each value by the sum; all zeros when the sum is zero."""
    total = sum(values.values())
    if total == 0:
        return {key: 0.0 for key in values}
    return {key: value / total for key, value in values.items()}


def cosine_similarity(a: Mapping[str, float], b: Mapping[str, float]) -> float:
    """
    Cosine similarity of two sparse vectors keyed by parameter.

    Keys missing from either vector count as zero. Returns 0.0 when either
    vector has zero norm.
    """
    keys = list(a.keys())
    keys.extend(k for k in b.keys() if k not in a)

    va = np.array([a.get(k, 0.0) for k in keys], dtype=float)
    vb = np.array([b.get(k, 0.0) for k in keys], dtype=float)

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def score_signature(observed: Mapping[str, float], signature: FaultSignature) -> float:
    """Score one signature against a normalized observed vector."""
    similarity = cosine_similarity(observed, signature.normalized())
    return round(similarity * 100.0, 1)


def diagnose(contributions: Mapping[str, float],
             library: SignatureLibrary) -> List[DiagnosisResult]:
    """
    Rank every fault signature against an observed contribution vector.

    Args:
        contributions: Raw (un-normalized) contribution vector
        library: Fault signature library

    Returns:
        DiagnosisResult list, descending by score, catalog order among ties
    """
    observed = normalize(contributions)
    results = [
        DiagnosisResult(signature=sig, score=score_signature(observed, sig))
        for sig in library
    ]
    # sorted() is stable, so equal scores keep catalog order
    return sorted(results, key=lambda r: r.score, reverse=True)


def top_k(results: List[DiagnosisResult], k: int = 3) -> List[DiagnosisResult]:
    """The k highest-ranked hypotheses."""
    return results[:k]


def above_threshold(results: Iterable[DiagnosisResult],
                    threshold: float = 50.0) -> List[DiagnosisResult]:
    """Hypotheses scoring at or above threshold (0-100 scale)."""
    return [r for r in results if r.score >= threshold]
