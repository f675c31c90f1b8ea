"""Chart analysis records produced by the metered analysis flow."""
from __future__ import annotations

import json
import re
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import ChartAnalysis
from app.services.errors import InvalidInput

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

TEXT_FIELDS = (
    "pattern",
    "confidence",
    "timeframe",
    "trend",
    "risk_reward",
    "explanation",
)
NUMERIC_FIELDS = ("entry_point", "stop_loss", "target")

# camelCase keys emitted by the analysis prompt
_PROMPT_KEYS = {
    "entryPoint": "entry_point",
    "stopLoss": "stop_loss",
    "riskReward": "risk_reward",
}


def parse_analysis_text(text: str | None) -> dict[str, Any]:
    """Return the JSON object embedded in the model output, or ``{}``."""
    if not text:
        return {}
    match = _JSON_OBJECT_RE.search(text.strip())
    if not match:
        return {}
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return {}
    if not isinstance(data, dict):
        return {}
    return {_PROMPT_KEYS.get(k, k): v for k, v in data.items()}


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "").lstrip("$"))
    except ValueError:
        return None


def build_analysis(user_id: str, payload: dict[str, Any]) -> ChartAnalysis:
    """Map a request payload (plus parsed model text) onto a new row."""
    image_name = payload.get("image_name")
    if not image_name:
        raise InvalidInput("image_name is required")

    full_text = payload.get("full_analysis") or ""
    parsed = parse_analysis_text(full_text)

    values: dict[str, Any] = {}
    for field in TEXT_FIELDS:
        raw = payload.get(field)
        if raw is None:
            raw = parsed.get(field)
        values[field] = None if raw is None else str(raw)
    for field in NUMERIC_FIELDS:
        raw = payload.get(field)
        if raw is None:
            raw = parsed.get(field)
        values[field] = _to_float(raw)

    return ChartAnalysis(
        user_id=user_id,
        image_name=image_name,
        image_size=payload.get("image_size") or 0,
        trading_style=payload.get("trading_style") or "general",
        full_analysis=full_text,
        **values,
    )


def analysis_to_dict(row: ChartAnalysis) -> dict[str, Any]:
    return {
        "id": row.id,
        "image_name": row.image_name,
        "image_size": row.image_size,
        "trading_style": row.trading_style,
        "pattern": row.pattern,
        "confidence": row.confidence,
        "timeframe": row.timeframe,
        "trend": row.trend,
        "entry_point": row.entry_point,
        "stop_loss": row.stop_loss,
        "target": row.target,
        "risk_reward": row.risk_reward,
        "explanation": row.explanation,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }


def list_analyses(
    db: Session,
    user_id: str,
    *,
    limit: int = 50,
    offset: int = 0,
    trading_style: str | None = None,
) -> dict[str, Any]:
    conditions = [ChartAnalysis.user_id == user_id]
    if trading_style and trading_style != "all":
        conditions.append(ChartAnalysis.trading_style == trading_style)

    rows = db.execute(
        select(ChartAnalysis)
        .where(*conditions)
        .order_by(ChartAnalysis.created_at.desc(), ChartAnalysis.id.desc())
        .limit(limit)
        .offset(offset)
    ).scalars()
    total = db.execute(
        select(func.count()).select_from(ChartAnalysis).where(*conditions)
    ).scalar_one()
    return {
        "analyses": [analysis_to_dict(r) for r in rows],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        },
    }


STYLE_BUCKETS = {"swing": "swing_analyses", "day": "day_analyses", "scalp": "scalp_analyses"}
TREND_BUCKETS = {"Bullish": "bullish_count", "Bearish": "bearish_count", "Sideways": "sideways_count"}


def trading_metrics(db: Session, user_id: str) -> dict[str, int]:
    """Lifetime breakdown of a user's analyses by trading style and trend."""
    rows = db.execute(
        select(ChartAnalysis.trading_style, ChartAnalysis.trend, func.count())
        .where(ChartAnalysis.user_id == user_id)
        .group_by(ChartAnalysis.trading_style, ChartAnalysis.trend)
    ).all()

    metrics = {"trades_analyzed": 0}
    metrics.update({key: 0 for key in STYLE_BUCKETS.values()})
    metrics.update({key: 0 for key in TREND_BUCKETS.values()})
    for style, trend, count in rows:
        metrics["trades_analyzed"] += count
        if style in STYLE_BUCKETS:
            metrics[STYLE_BUCKETS[style]] += count
        if trend in TREND_BUCKETS:
            metrics[TREND_BUCKETS[trend]] += count
    return metrics


__all__ = [
    "parse_analysis_text",
    "build_analysis",
    "analysis_to_dict",
    "list_analyses",
    "trading_metrics",
]
