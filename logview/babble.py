# logview/babble.py
"""Synthetic log lines for trying out the viewer.

Roughly one line in six has no header; the rest use the header grammar
with a random level and target. Some sentences carry wide glyphs so
wrapping of double-width text gets exercised.
"""
from __future__ import annotations
import random
from datetime import datetime, timedelta, timezone
from typing import Iterator

from logview.parser import LEVEL_NAMES

SENTENCES = [
    "Petersburg, used only by the elite",
    "The morning train left without its passengers, who stood on the platform arguing about the timetable",
    "Connection pool exhausted; waiting for a free slot",
    "retrying request to upstream after 250ms",
    "cache miss for key user:1842:profile",
    "Shutting down worker 7 after 10000 jobs",
    "Received 14 bytes that were not expected by the handshake",
    "東京の天気は晴れ、気温は二十度です",
    "deploy finished 🚀 all checks green ✅",
    "configuration reloaded from /etc/service/config.yaml",
    "A very long identifier without any spaces: aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa",
    "heartbeat ok",
]


def babble(
    lines: int, rng: random.Random | None = None, start: datetime | None = None
) -> Iterator[str]:
    rng = rng or random.Random()
    now = start or datetime.now(timezone.utc)
    for _ in range(lines):
        sentence = rng.choice(SENTENCES)
        now += timedelta(milliseconds=rng.randint(1, 5000))
        choice = rng.randint(0, 5)
        if choice == 0:
            yield sentence
            continue
        level = LEVEL_NAMES[choice - 1]
        target = f"s{rng.randint(0, 9)}"
        yield f"[{now.strftime('%Y-%m-%dT%H:%M:%SZ')} {level} {target}] {sentence}"
