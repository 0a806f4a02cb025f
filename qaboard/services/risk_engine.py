"""
Risk Engine — derive a project's delivery risk from its checklist.

The assessment is recomputed on demand and never stored as the source of
truth; only a few denormalised metrics are copied onto the Project by the
checklist service.

Evaluation order fixes the order of reasons/recommendations. The final
level is the highest severity reached by any rule (low < medium < high),
except that an overdue target date forces ``high``.

Usage:
    from qaboard.services.risk_engine import assess
    risk = assess(items, open_conflicts, project)
    risk.level, risk.can_deliver
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from qaboard.utils.helpers import parse_date

logger = logging.getLogger(__name__)


LEVELS = ("low", "medium", "high")

THRESHOLDS = {
    "high_pending_max": 3,          # more than this many pending "high" items -> medium
    "min_completion_pct": 50,       # below this completion -> medium
    "deadline_warn_days": 3,        # fewer days than this left ...
    "deadline_min_completion_pct": 80,  # ... with completion below this -> medium
}

GOOD_STATE_REASON = "Proyecto en buen estado"
GOOD_STATE_RECOMMENDATION = "Continuar con el plan actual"


@dataclass
class RiskAssessment:
    level: str = "low"
    completion_rate: float = 0.0
    critical_pending: int = 0
    high_pending: int = 0
    conflicts: int = 0
    reasons: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    can_deliver: bool = True
    days_remaining: int | None = None

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "completion_rate": self.completion_rate,
            "critical_pending": self.critical_pending,
            "high_pending": self.high_pending,
            "conflicts": self.conflicts,
            "reasons": list(self.reasons),
            "recommendations": list(self.recommendations),
            "can_deliver": self.can_deliver,
            "days_remaining": self.days_remaining,
        }


def _get(obj, key, default=None):
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _raise_to(current: str, target: str) -> str:
    """Return the more severe of two levels."""
    return current if LEVELS.index(current) >= LEVELS.index(target) else target


def _is_open(conflict) -> bool:
    return (_get(conflict, "status") or "open") == "open"


def days_until(target, now: datetime | None = None) -> int | None:
    """Whole days from ``now`` to ``target`` rounded up; None without a target.

    A bare date is taken as midnight UTC of that day.
    """
    if not target:
        return None
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    if isinstance(target, datetime):
        target_dt = target if target.tzinfo else target.replace(tzinfo=timezone.utc)
    else:
        target_day = target if isinstance(target, date) else parse_date(target)
        if target_day is None:
            return None
        target_dt = datetime(target_day.year, target_day.month, target_day.day, tzinfo=timezone.utc)
    return math.ceil((target_dt - now).total_seconds() / 86400)


def assess(items, conflicts=None, project=None, now: datetime | None = None) -> RiskAssessment:
    """Compute the risk assessment for a project.

    Args:
        items: ChecklistItem rows or dicts with ``weight`` and ``status``.
        conflicts: Conflict rows or dicts; only ``status == "open"`` count.
        project: Project row or dict; only ``target_date`` is read.
        now: Evaluation instant (defaults to current UTC time).

    Returns:
        RiskAssessment. Missing inputs are treated as empty.
    """
    items = list(items or [])
    total = len(items)
    completed = sum(1 for i in items if _get(i, "status") == "completed")
    critical_pending = sum(
        1 for i in items if _get(i, "weight") == "critical" and _get(i, "status") != "completed"
    )
    high_pending = sum(
        1 for i in items if _get(i, "weight") == "high" and _get(i, "status") != "completed"
    )
    open_conflicts = sum(1 for c in (conflicts or []) if _is_open(c))
    completion_rate = (completed / total) * 100 if total > 0 else 0.0

    risk = RiskAssessment(
        completion_rate=completion_rate,
        critical_pending=critical_pending,
        high_pending=high_pending,
        conflicts=open_conflicts,
    )

    if critical_pending > 0:
        risk.level = "high"
        risk.reasons.append(f"{critical_pending} ítem(s) crítico(s) pendiente(s)")
        risk.recommendations.append("Completar todos los ítems críticos antes de entregar")

    if open_conflicts > 0:
        risk.level = "medium" if risk.level == "low" else "high"
        risk.reasons.append(f"{open_conflicts} conflicto(s) sin resolver")
        risk.recommendations.append("Resolver conflictos con el líder web")

    if high_pending > THRESHOLDS["high_pending_max"]:
        risk.level = _raise_to(risk.level, "medium")
        risk.reasons.append(f"{high_pending} ítems de alta prioridad pendientes")
        risk.recommendations.append("Priorizar ítems de alta importancia")

    # An empty checklist has nothing to be behind on yet
    if total > 0 and completion_rate < THRESHOLDS["min_completion_pct"]:
        risk.level = _raise_to(risk.level, "medium")
        risk.reasons.append(f"Solo {completion_rate:.0f}% completado")
        risk.recommendations.append("Acelerar progreso del proyecto")

    days_remaining = days_until(_get(project, "target_date"), now)
    risk.days_remaining = days_remaining
    if days_remaining is not None:
        if days_remaining < 0:
            risk.level = "high"
            risk.reasons.append("Fecha de entrega vencida")
            risk.recommendations.append("Renegociar fecha de entrega")
        elif (days_remaining < THRESHOLDS["deadline_warn_days"]
              and completion_rate < THRESHOLDS["deadline_min_completion_pct"]):
            risk.level = _raise_to(risk.level, "medium")
            risk.reasons.append(f"Solo {days_remaining} días restantes")
            risk.recommendations.append("Enfocar esfuerzos en ítems críticos")

    if not risk.reasons:
        risk.reasons.append(GOOD_STATE_REASON)
        risk.recommendations.append(GOOD_STATE_RECOMMENDATION)

    risk.can_deliver = critical_pending == 0 and open_conflicts == 0

    logger.debug(
        "Risk assessed level=%s completion=%.1f critical_pending=%d conflicts=%d",
        risk.level, completion_rate, critical_pending, open_conflicts,
    )
    return risk
