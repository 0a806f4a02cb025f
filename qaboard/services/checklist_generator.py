"""
Checklist Generator — instantiate the master template for one project.

Pure functions over the catalogue and the project's site type, technology
and (optionally) applicable areas. Nothing here touches the database; the
caller stamps ``project_id`` and persists the records once per project.

Usage:
    from qaboard.services.checklist_generator import generate_checklist
    items = generate_checklist("ecommerce", "shopify")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from qaboard.services.template_catalog import (
    ALWAYS_ON_AREAS,
    CHECKLIST_TEMPLATE,
    WEIGHT_ESCALATION,
    ChecklistItemTemplate,
    critical_phases_for,
    phase_area,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedItem:
    """A template entry after filtering and weight adjustment."""
    phase: str
    title: str
    weight: str
    order: int
    technologies: tuple[str, ...]
    site_types: tuple[str, ...]
    base_weight: str

    @property
    def escalated(self) -> bool:
        return self.weight != self.base_weight

    def to_record(self, project_id: int) -> dict:
        """Column values for a new ChecklistItem row."""
        return {
            "project_id": project_id,
            "phase": self.phase,
            "title": self.title,
            "weight": self.weight,
            "order": self.order,
            "status": "pending",
            "applicable_technologies": list(self.technologies),
            "applicable_site_types": list(self.site_types),
        }


def escalate_weight(weight: str) -> str:
    """Raise a weight exactly one step (medium→high, high→critical).

    ``low`` and ``critical`` are returned unchanged.
    """
    return WEIGHT_ESCALATION.get(weight, weight)


def _area_allowed(phase: str, applicable_areas) -> bool:
    if not applicable_areas:
        return True
    area = phase_area(phase)
    return area in ALWAYS_ON_AREAS or area in applicable_areas


def generate_checklist(
    site_type: str,
    technology: str,
    applicable_areas: list[str] | None = None,
    template: tuple[ChecklistItemTemplate, ...] = CHECKLIST_TEMPLATE,
) -> list[GeneratedItem]:
    """Produce the per-project checklist for a site type and technology.

    Args:
        site_type: Project site type key (e.g. "landing").
        technology: Project technology key (e.g. "wordpress").
        applicable_areas: Optional opt-in areas; empty or None keeps all.
        template: Master list to filter (the catalogue by default).

    Returns:
        Items in template order, with weights escalated one step for phases
        the site type marks as critical. Identical inputs always yield an
        identical list.
    """
    critical = set(critical_phases_for(site_type))
    result = []
    for tpl in template:
        if not tpl.applies_to(site_type, technology):
            continue
        if not _area_allowed(tpl.phase, applicable_areas):
            continue
        weight = escalate_weight(tpl.weight) if tpl.phase in critical else tpl.weight
        result.append(GeneratedItem(
            phase=tpl.phase,
            title=tpl.title,
            weight=weight,
            order=tpl.order,
            technologies=tpl.technologies,
            site_types=tpl.site_types,
            base_weight=tpl.weight,
        ))

    logger.debug(
        "Generated checklist site_type=%s technology=%s items=%d escalated=%d",
        site_type, technology, len(result), sum(1 for i in result if i.escalated),
    )
    return result
