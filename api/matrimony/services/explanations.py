from __future__ import annotations

from typing import Any

_REASON_RULES: list[tuple[str, float, str]] = [
    ("age", 0.8, "Age within preferred range"),
    ("location", 1.0, "Location matches preference"),
    ("location", 0.7, "Same country"),
    ("community", 1.0, "Community preference matched"),
    ("education", 1.0, "Education matches"),
    ("profession", 1.0, "Profession preference matched"),
    ("diet", 1.0, "Diet preference matched"),
    ("diet", 0.75, "Compatible diet"),
    ("habits", 1.0, "Lifestyle habits match"),
    ("marital_status", 1.0, "Marital status match"),
]

_HARD_FAILURE_LABELS = {
    "age": "Outside preferred age range",
    "location": "Outside preferred location",
    "marital_status": "Marital status not accepted",
    "habits": "Habits not accepted",
    "community": "Community not accepted",
    "education": "Education not accepted",
    "profession": "Profession not accepted",
    "diet": "Diet not accepted",
    "self": "Cannot match a profile with itself",
}


def build_reasons(breakdown: dict[str, Any]) -> list[str]:
    """One reason per dimension, the strongest rule that the score clears."""
    reasons: list[str] = []
    seen_dims: set[str] = set()
    for dim, threshold, text in _REASON_RULES:
        if dim in seen_dims:
            continue
        try:
            score = float(breakdown.get(dim))
        except (TypeError, ValueError):
            continue
        if score >= threshold:
            reasons.append(text)
            seen_dims.add(dim)
    return reasons


def describe_hard_failures(hard_failures: list[str]) -> list[str]:
    out: list[str] = []
    for dim in hard_failures:
        label = _HARD_FAILURE_LABELS.get(dim, dim.replace("_", " ").capitalize())
        if label not in out:
            out.append(label)
    return out
