import random
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete

from ..models import UserAccount, UserBlock, UserEducation, UserExpectations, UserHealth, UserPersonal, UserProfession

GENDERS = ["male", "female"]
RELIGIONS = ["Hindu", "Jain"]
COMMUNITIES = [
    "Patel-Desai",
    "Patel-Kadva",
    "Patel-Leva",
    "Brahmin-Audichya",
    "Brahmin",
    "Jain-Digambar",
    "Jain-Swetamber",
    "Vaishnav-Vania",
]
MARITAL_STATUSES = ["Never Married", "Divorced", "Widowed", "Separated", "Awaiting Divorce"]
PROFESSIONS = [
    "Software Engineer",
    "Data Analyst",
    "Teacher",
    "Doctor",
    "Nurse",
    "Business Analyst",
    "Project Manager",
    "Entrepreneur",
]
DIETS = ["vegetarian", "non-vegetarian", "eggetarian", "jain", "flexitarian"]
EDUCATION_LEVELS = ["High School", "Bachelors", "Masters", "Doctorate", "Diploma"]
INCOME_BRACKETS = ["0-5L", "5-10L", "10-20L", "20L+"]
HABITS = ["no", "occasional", "yes"]
LOCATIONS = {
    "India": ["Gujarat", "Maharashtra", "Karnataka", "Rajasthan"],
    "USA": ["California", "New Jersey", "Texas"],
    "UK": ["London"],
}


def _maybe(rng: random.Random, value: Any, p_missing: float = 0.1) -> Any:
    return None if rng.random() < p_missing else value


def _expectations(rng: random.Random, age: int) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if rng.random() < 0.8:
        spread = rng.randint(2, 6)
        out["age"] = {"from": max(18, age - spread), "to": age + spread}
    if rng.random() < 0.6:
        out["community"] = rng.sample(COMMUNITIES, k=rng.randint(1, 3))
    if rng.random() < 0.2:
        out["community"] = ["Any", f"not {rng.choice(COMMUNITIES)}"]
    if rng.random() < 0.5:
        out["country"] = [rng.choice(list(LOCATIONS))]
    if rng.random() < 0.4:
        out["diet"] = rng.sample(DIETS, k=rng.randint(1, 2))
    if rng.random() < 0.3:
        out["education"] = rng.sample(EDUCATION_LEVELS, k=2)
    if rng.random() < 0.5:
        out["marital_status"] = ["Never Married"] if rng.random() < 0.7 else "Any"
    if rng.random() < 0.5:
        out["alcohol"] = rng.choice(["no", "occasionally", "any"])
    if rng.random() < 0.5:
        out["tobacco"] = rng.choice([False, "no", "any"])
    return out


def seed_profiles(
    db,
    *,
    n_users: int = 100,
    seed: int = 42,
    reset: bool = False,
    as_of: date | None = None,
    block_rate: float = 0.02,
) -> dict[str, Any]:
    """Insert ``n_users`` synthetic profiles with expectations and a few blocks.

    Deterministic for a given ``seed``. Returns a summary of what was written.
    """
    rng = random.Random(seed)
    as_of = as_of or date.today()
    now = datetime.now(timezone.utc)

    if reset:
        for model in (UserBlock, UserExpectations, UserProfession, UserEducation, UserHealth, UserPersonal, UserAccount):
            db.execute(delete(model))

    genders: Counter[str] = Counter()
    users: list[tuple[str, int]] = []
    for idx in range(n_users):
        user_id = f"seed-{seed}-{idx:05d}"
        gender = GENDERS[idx % 2]
        age = rng.randint(21, 38)
        db.add(
            UserAccount(
                id=user_id,
                gender=gender,
                date_of_birth=as_of - timedelta(days=age * 365 + rng.randint(0, 364)),
                is_active=rng.random() > 0.03,
                is_visible=rng.random() > 0.05,
                is_profile_approved=rng.random() > 0.1,
                last_active_at=now - timedelta(hours=rng.randint(0, 24 * 60)),
            )
        )
        users.append((user_id, age))
        genders[gender] += 1

    # accounts first so section rows satisfy their foreign keys
    db.flush()
    for user_id, age in users:
        country = rng.choice(list(LOCATIONS))
        db.add(
            UserPersonal(
                user_id=user_id,
                marital_status=rng.choices(MARITAL_STATUSES, weights=[8, 1, 0.5, 0.5, 0.5], k=1)[0],
                religion=rng.choice(RELIGIONS),
                community=_maybe(rng, rng.choice(COMMUNITIES)),
                country=country,
                state=_maybe(rng, rng.choice(LOCATIONS[country])),
            )
        )
        db.add(
            UserHealth(
                user_id=user_id,
                diet=_maybe(rng, rng.choice(DIETS)),
                alcohol=_maybe(rng, rng.choices(HABITS, weights=[6, 3, 1], k=1)[0]),
                tobacco=_maybe(rng, rng.choices(HABITS, weights=[8, 1, 1], k=1)[0]),
            )
        )
        db.add(UserEducation(user_id=user_id, highest_education=_maybe(rng, rng.choice(EDUCATION_LEVELS))))
        db.add(
            UserProfession(
                user_id=user_id,
                occupation=_maybe(rng, rng.choice(PROFESSIONS)),
                income_bracket=_maybe(rng, rng.choice(INCOME_BRACKETS), 0.3),
            )
        )
        if rng.random() < 0.85:
            db.add(UserExpectations(user_id=user_id, expectations=_expectations(rng, age)))

    blocks: set[tuple[str, str]] = set()
    ids = [u for u, _ in users]
    for _ in range(int(n_users * block_rate)):
        a, b = rng.sample(ids, k=2)
        blocks.add((a, b))
    for a, b in sorted(blocks):
        db.add(UserBlock(user_id=a, blocked_user_id=b))

    db.commit()
    return {"users": len(ids), "genders": dict(genders), "blocks": len(blocks), "seed": seed}
