from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def start_timer() -> float:
    return time.perf_counter()


def stop_timer(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0
