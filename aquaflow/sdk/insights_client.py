"""
AI insight and meter OCR client.

Wraps the OpenAI chat completions API. Provider failures never escape:
insights fall back to a safe low-level message and OCR returns None.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from openai import OpenAI

from ..config.loader import DEFAULT_INSIGHTS_MODEL
from ..core.summary import recent_consumption
from ..storage.models import AlertLevel, Customer
from ..utils.logger import get_logger

logger = get_logger(__name__)

FALLBACK_ANALYSIS = "Unable to generate insights at the moment. Please check back later."

OCR_PROMPT = (
    "This is a photo of a water meter. Please extract the numeric reading shown "
    "on the meter display. Return ONLY the number. If the number contains "
    "decimals, include them. If you cannot find a clear reading, return 'ERROR'."
)


@dataclass(frozen=True)
class InsightResult:
    """Analysis text and coarse severity returned by the provider."""
    analysis: str
    alert_level: AlertLevel


FALLBACK_INSIGHT = InsightResult(analysis=FALLBACK_ANALYSIS, alert_level=AlertLevel.LOW)


def build_insight_prompt(customer: Customer) -> str:
    """Build the analysis prompt from the customer's last five readings."""
    history = "\n".join(
        f"Date: {date.date().isoformat()}, Consumed: {consumption:g} m3"
        for date, consumption in recent_consumption(customer, limit=5)
    )
    return (
        f'Analyze this water consumption history for customer "{customer.name}":\n'
        f"{history}\n\n"
        f"Current Reading: {customer.last_reading:g}\n\n"
        "Provide a brief, helpful summary (max 3 sentences) for a mobile app user.\n"
        "Identify any potential leaks (sudden spikes) or saving tips based on usage patterns.\n"
        'Return the response in JSON format with two keys: "analysis" and '
        '"alertLevel" (low, medium, high).'
    )


def parse_insight_response(content: Optional[str]) -> InsightResult:
    """Parse the model's JSON answer.

    Raises:
        ValueError: If the content is not a JSON object with a non-empty
            analysis and a valid alertLevel
    """
    data: Dict[str, Any] = json.loads(content or "{}")
    if not isinstance(data, dict):
        raise ValueError("insight response must be a JSON object")

    analysis = data.get("analysis")
    if not isinstance(analysis, str) or not analysis.strip():
        raise ValueError("insight response missing analysis")

    return InsightResult(
        analysis=analysis.strip(),
        alert_level=AlertLevel.parse(data.get("alertLevel")),
    )


def clean_meter_text(text: Optional[str]) -> Optional[str]:
    """Normalise an OCR answer to a numeric string, or None if unusable."""
    if not text:
        return None
    text = text.strip()
    if not text or text == "ERROR":
        return None
    cleaned = text.replace(",", "")
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return cleaned


class WaterInsightsClient:
    """Insight and OCR provider backed by OpenAI.

    Both operations are treated as unreliable network calls. Errors are
    logged and converted to a fallback value at this boundary.
    """

    def __init__(self, model: str = DEFAULT_INSIGHTS_MODEL, client: Optional[OpenAI] = None):
        """Initialize the insights client.

        Args:
            model: Chat model used for both insights and OCR
            client: Pre-built OpenAI client (defaults to one configured
                from the environment when first needed)

        Raises:
            ValueError: If model is missing/empty
        """
        if not model or not model.strip():
            raise ValueError("model is required and cannot be empty")

        self.model = model
        self._client = client

    @property
    def client(self) -> OpenAI:
        """OpenAI client, built on first use inside the guarded provider calls."""
        if self._client is None:
            self._client = OpenAI()
        return self._client

    def get_water_insights(self, customer: Customer) -> InsightResult:
        """Analyse a customer's recent consumption.

        Args:
            customer: Customer whose history is analysed

        Returns:
            InsightResult from the model, or FALLBACK_INSIGHT on any failure
        """
        prompt = build_insight_prompt(customer)
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
            )
            result = parse_insight_response(response.choices[0].message.content)
        except Exception as e:
            logger.error("Insight generation failed for customer %s: %s", customer.id, e)
            return FALLBACK_INSIGHT

        logger.info("Insight for customer %s: %s", customer.id, result.alert_level.value)
        return result

    def extract_meter_reading(self, image_base64: str, mime_type: str = "image/jpeg") -> Optional[str]:
        """Read the numeric value from a meter photo.

        Args:
            image_base64: Base64-encoded image data
            mime_type: Image MIME type

        Returns:
            Numeric string with thousands separators removed, or None when
            no clear reading was found or the call failed
        """
        if not image_base64:
            return None

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{image_base64}"},
                        },
                        {"type": "text", "text": OCR_PROMPT},
                    ],
                }],
            )
            text = response.choices[0].message.content
        except Exception as e:
            logger.error("Meter OCR failed: %s", e)
            return None

        reading = clean_meter_text(text)
        if reading is None:
            logger.warning("No clear meter reading in OCR answer: %r", text)
        return reading
