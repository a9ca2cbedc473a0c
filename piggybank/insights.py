"""AI-generated spending summary.

The transactions of the selected window are rendered as plain text and
sent to the Gemini ``generateContent`` REST endpoint, which is asked for a
JSON object with ``insights`` and ``recommendations`` lists.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd
import requests

try:
    from .aggregation import PARSED_DATE, Records, to_frame
    from .config import GEMINI_API_KEY, GEMINI_ENDPOINT, GEMINI_MODEL, HTTP_TIMEOUT
except ImportError:  # pragma: no cover - fallback for direct execution
    from aggregation import PARSED_DATE, Records, to_frame
    from config import GEMINI_API_KEY, GEMINI_ENDPOINT, GEMINI_MODEL, HTTP_TIMEOUT

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You are a personal finance advisor. Analyze the following financial data and provide insights and recommendations to help the user understand their spending habits and identify potential savings.

Financial Data:
{financial_data}

Provide clear and actionable insights into the user's spending habits, identifying areas where they are spending the most money.
Offer personalized recommendations on how the user can save money based on their spending patterns.
Answer with a JSON object with two arrays of short strings: "insights" and "recommendations"."""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "insights": {"type": "ARRAY", "items": {"type": "STRING"}},
        "recommendations": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["insights", "recommendations"],
}


class InsightsError(RuntimeError):
    """The spending summary could not be generated."""


@dataclass
class SpendingInsights:
    insights: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"insights": list(self.insights), "recommendations": list(self.recommendations)}


def format_financial_data(transactions: Records) -> str:
    """One line per transaction: ``date: notes (category) - $amount``."""
    frame = to_frame(transactions)
    lines = []
    for _, row in frame.iterrows():
        stamp = row[PARSED_DATE]
        date_label = "Invalid Date" if pd.isna(stamp) else stamp.strftime("%Y-%m-%d %H:%M")
        lines.append(f"{date_label}: {row['Notes']} ({row['Category']}) - ${row['Amount']:.2f}")
    return "\n".join(lines)


def _as_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str):
        return [line.strip(" -*\t") for line in value.splitlines() if line.strip(" -*\t")]
    return []


def parse_model_output(text: str) -> SpendingInsights:
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise InsightsError("The model returned malformed output.") from exc
    if not isinstance(payload, dict):
        raise InsightsError("The model returned malformed output.")
    return SpendingInsights(
        insights=_as_list(payload.get("insights")),
        recommendations=_as_list(payload.get("recommendations")),
    )


def get_spending_insights(financial_data: str, api_key: Optional[str] = None) -> SpendingInsights:
    """Ask Gemini for insights on ``financial_data``."""
    api_key = api_key or GEMINI_API_KEY
    if not api_key:
        raise InsightsError("GEMINI_API_KEY is not configured.")
    if not financial_data.strip():
        raise InsightsError("There are no transactions to analyse.")

    body = {
        "contents": [{"role": "user", "parts": [{"text": PROMPT_TEMPLATE.format(financial_data=financial_data)}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }
    try:
        response = requests.post(
            GEMINI_ENDPOINT.format(model=GEMINI_MODEL),
            json=body,
            headers={"x-goog-api-key": api_key},
            timeout=HTTP_TIMEOUT * 3,
        )
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("AI analysis failed: %s", exc)
        raise InsightsError("Could not generate spending insights at this time.") from exc

    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        logger.error("Unexpected Gemini response shape: %s", payload)
        raise InsightsError("Could not generate spending insights at this time.") from exc
    return parse_model_output(text)
