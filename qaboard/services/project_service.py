"""Project and team member persistence."""

import logging

from qaboard.core.exceptions import NotFoundError, ValidationError
from qaboard.models import db
from qaboard.models.project import SITE_TYPES, TECHNOLOGIES, Project, TeamMember
from qaboard.services.optimistic_cache import drop_board_cache
from qaboard.services.permission_gate import get_gate
from qaboard.services.template_catalog import SELECTABLE_AREAS
from qaboard.utils.helpers import clean_text, get_or_raise, parse_date_input

logger = logging.getLogger(__name__)

PROJECT_FIELDS = ("name", "client", "site_type", "technology", "applicable_areas", "target_date")


def _validate_project_data(data: dict, partial=False) -> dict:
    errors = {}
    cleaned = {}

    if "name" in data or not partial:
        name = clean_text(data.get("name"))
        if not name:
            errors["name"] = "required"
        cleaned["name"] = name
    if "client" in data:
        cleaned["client"] = clean_text(data.get("client"))
    if "site_type" in data or not partial:
        site_type = data.get("site_type") or "landing"
        if not isinstance(site_type, str) or site_type not in SITE_TYPES:
            errors["site_type"] = f"one of {', '.join(sorted(SITE_TYPES))}"
        cleaned["site_type"] = site_type
    if "technology" in data or not partial:
        technology = data.get("technology") or "wordpress"
        if not isinstance(technology, str) or technology not in TECHNOLOGIES:
            errors["technology"] = f"one of {', '.join(sorted(TECHNOLOGIES))}"
        cleaned["technology"] = technology
    if "applicable_areas" in data:
        areas = data.get("applicable_areas") or []
        if not isinstance(areas, list) or not all(isinstance(a, str) for a in areas):
            errors["applicable_areas"] = "must be a list of area keys"
            areas = []
        unknown = [a for a in areas if a not in SELECTABLE_AREAS]
        if unknown:
            errors["applicable_areas"] = f"unknown: {', '.join(unknown)}"
        cleaned["applicable_areas"] = list(areas)
    if "target_date" in data:
        try:
            cleaned["target_date"] = parse_date_input(data.get("target_date"))
        except ValueError as exc:
            errors["target_date"] = str(exc)

    if errors:
        raise ValidationError("Datos de proyecto inválidos", details=errors)
    return cleaned


def create_project(data: dict):
    cleaned = _validate_project_data(data)
    project = Project(**cleaned)
    db.session.add(project)
    db.session.commit()
    logger.info(
        "Project created %s/%s", project.site_type, project.technology,
        extra={"project_id": project.id},
    )
    return project


def get_project(project_id):
    return get_or_raise(Project, project_id)


def list_projects():
    return Project.query.order_by(Project.created_at.desc(), Project.id.desc()).all()


def update_project(project_id, data: dict):
    """Edit project fields.

    Changing site type, technology or areas does not regenerate an existing
    checklist.
    """
    project = get_or_raise(Project, project_id)
    cleaned = _validate_project_data(data, partial=True)
    for key, value in cleaned.items():
        setattr(project, key, value)
    db.session.commit()
    logger.info("Project updated fields=%s", sorted(cleaned), extra={"project_id": project_id})
    return project


def delete_project(project_id):
    project = get_or_raise(Project, project_id)
    db.session.delete(project)
    db.session.commit()
    drop_board_cache(project_id)
    logger.info("Project deleted", extra={"project_id": project_id})


# ── Team members ────────────────────────────────────────────────────────────

def list_team_members(project_id, active_only=True):
    project = get_or_raise(Project, project_id)
    q = project.team_members
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(TeamMember.id).all()


def add_team_member(project_id, data: dict):
    get_or_raise(Project, project_id)
    email = clean_text(data.get("email")).lower()
    role = clean_text(data.get("role"))
    errors = {}
    if not email:
        errors["email"] = "required"
    if role not in get_gate().registry:
        errors["role"] = "Rol no válido"
    if errors:
        raise ValidationError("Datos de miembro inválidos", details=errors)

    member = TeamMember.query.filter_by(project_id=project_id, email=email).first()
    if member is None:
        member = TeamMember(project_id=project_id, email=email)
        db.session.add(member)
    member.full_name = clean_text(data.get("full_name")) or member.full_name or ""
    member.role = role
    member.is_active = True
    db.session.commit()
    logger.info("Team member %s set to role %s", email, role, extra={"project_id": project_id, "role": role})
    return member


def remove_team_member(project_id, member_id):
    member = get_or_raise(TeamMember, member_id)
    if member.project_id != project_id:
        raise NotFoundError("TeamMember", member_id)
    member.is_active = False
    db.session.commit()
    logger.info("Team member %s deactivated", member.email, extra={"project_id": project_id})
