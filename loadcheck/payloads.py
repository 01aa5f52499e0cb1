"""
Payload factories for write scenarios.

Every generated post carries an identifier built from a millisecond
timestamp plus a random suffix, so concurrent simulated clients (and
back-to-back runs) never submit colliding titles.  Collisions are avoided
by construction rather than by locking.
"""

from __future__ import annotations

import random
import string
import time
from datetime import datetime, timezone
from typing import Any


def unique_token(rng: random.Random, prefix: str = "lc") -> str:
    """Return ``<prefix>-<epoch ms>-<6 random chars>``."""
    ts = int(time.time() * 1000)
    suffix = "".join(rng.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{prefix}-{ts}-{suffix}"


def random_author_id(rng: random.Random, authors: int = 10) -> str:
    return f"user-{rng.randint(1, authors)}"


def post_payload(
    rng: random.Random,
    *,
    label: str = "Load Test",
    content_repeat: int = 1,
    authors: int = 10,
) -> dict[str, Any]:
    """
    Build a valid post-create payload.

    Args:
        rng: Random source (seeded in tests).
        label: Human-readable prefix for the title, e.g. ``"Spike Test"``.
        content_repeat: Repeat the content sentence to produce larger
            bodies for write-heavy stress traffic.
        authors: Size of the author id pool.
    """
    token = unique_token(rng, prefix=label.lower().replace(" ", "-"))
    now = datetime.now(timezone.utc).isoformat()
    sentence = f"Content for {label.lower()} {token} at {now}. "
    return {
        "title": f"{label} Post {token}",
        "content": sentence * max(1, content_repeat),
        "authorId": random_author_id(rng, authors),
    }
