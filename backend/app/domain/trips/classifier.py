"""
Conduct Classifier.

Client for the external driving-conduct prediction service.

The prediction is best effort: trips are always stored, and any failure to
obtain a usable label (network error, timeout, non-2xx status, malformed body)
resolves to TripConduct.UNKNOWN. Nothing raised by the HTTP layer reaches the
caller of classify().
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from backend.app.models.trip_enums import TripConduct

logger = logging.getLogger(__name__)

PREDICT_PATH = "/predict"

# Keys of the prediction body that may hold the label, in lookup order
LABEL_FIELDS = ("conduct", "label")

PREDICTABLE = {
    TripConduct.NORMAL.value: TripConduct.NORMAL,
    TripConduct.AGGRESSIVE.value: TripConduct.AGGRESSIVE,
}


@dataclass(frozen=True)
class ClassificationResult:
    """Ok(label) when label is set, Err(reason) otherwise."""
    label: Optional[TripConduct] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, label: TripConduct) -> "ClassificationResult":
        return cls(label=label)

    @classmethod
    def err(cls, reason: str) -> "ClassificationResult":
        return cls(reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.label is not None

    def label_or_unknown(self) -> TripConduct:
        return self.label if self.label is not None else TripConduct.UNKNOWN


def parse_label(body: Any) -> ClassificationResult:
    """Extract a NORMAL / AGGRESSIVE label from a decoded prediction body."""
    if not isinstance(body, dict):
        return ClassificationResult.err("prediction body is not an object")

    for key in LABEL_FIELDS:
        value = body.get(key)
        if value is None:
            continue
        if isinstance(value, str) and value.strip().upper() in PREDICTABLE:
            return ClassificationResult.ok(PREDICTABLE[value.strip().upper()])
        return ClassificationResult.err(f"unrecognised label {value!r}")

    return ClassificationResult.err("prediction body has no label")


class ConductClassifier:
    """
    Calls POST {base_url}/predict with the payload verbatim.

    Args:
        base_url: Address of the prediction service
        timeout: Seconds allowed for the whole request
        transport: Optional httpx transport (tests plug a MockTransport here)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def predict_url(self) -> str:
        return f"{self.base_url}{PREDICT_PATH}"

    async def predict(self, payload: Dict[str, Any]) -> ClassificationResult:
        """Ask the prediction service for a label. Never raises."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.predict_url, json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException as exc:
            return ClassificationResult.err(f"timeout after {self.timeout}s: {exc!r}")
        except httpx.HTTPStatusError as exc:
            return ClassificationResult.err(f"status {exc.response.status_code}")
        except httpx.HTTPError as exc:
            return ClassificationResult.err(f"transport error: {exc!r}")
        except (TypeError, ValueError) as exc:
            # Undecodable response body, or a payload that is not JSON serialisable
            return ClassificationResult.err(f"invalid JSON: {exc}")

        return parse_label(body)

    async def classify(self, payload: Dict[str, Any]) -> TripConduct:
        """Resolve the conduct label for a trip, UNKNOWN on any failure."""
        result = await self.predict(payload)
        if not result.is_ok:
            logger.warning(
                "Conduct prediction failed, falling back to %s: %s",
                TripConduct.UNKNOWN.value, result.reason,
                extra={"predict_url": self.predict_url},
            )
        return result.label_or_unknown()
