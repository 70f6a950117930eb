from __future__ import annotations

import os

# Settings are cached on first use, so the test environment is fixed before any import.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["RESPONDER_BACKEND"] = "demo"
os.environ["RESPONSE_MIN_DELAY_MS"] = "0"
os.environ["SEED_GREETING"] = "true"
os.environ.pop("API_KEYS", None)
os.environ.pop("STRICT_TRIGGER_SERIALIZATION", None)
