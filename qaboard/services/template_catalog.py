"""
Template Catalog — static phases, weights, site-type rules and the master
checklist.

Everything here is immutable catalogue data. Per-project overrides (phase
names, hidden phases, phase order) live on the Project row and never
modify this module.

Usage:
    from qaboard.services.template_catalog import PHASES, CHECKLIST_TEMPLATE
    PHASES["qa"].name                  # -> "QA - Testing"
    critical_phases_for("ecommerce")   # -> ("documentation", "technical", ...)
"""

from __future__ import annotations

from dataclasses import dataclass, field

ALL = "all"


# ═════════════════════════════════════════════════════════════════════════════
# Data Classes
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Phase:
    """A named stage of project delivery."""
    key: str
    name: str
    order: int
    area: str

    def to_dict(self) -> dict:
        return {"key": self.key, "name": self.name, "order": self.order, "area": self.area}


@dataclass(frozen=True)
class WeightLevel:
    key: str
    label: str
    priority: int


@dataclass(frozen=True)
class SiteType:
    key: str
    name: str
    critical_phases: tuple[str, ...] = ()


@dataclass(frozen=True)
class ChecklistItemTemplate:
    """One master checklist entry with its applicability tags."""
    phase: str
    title: str
    weight: str
    order: int
    technologies: tuple[str, ...] = (ALL,)
    site_types: tuple[str, ...] = (ALL,)

    def applies_to(self, site_type: str, technology: str) -> bool:
        tech_match = ALL in self.technologies or technology in self.technologies
        site_match = ALL in self.site_types or site_type in self.site_types
        return tech_match and site_match

    def to_dict(self) -> dict:
        return {
            "phase": self.phase,
            "title": self.title,
            "weight": self.weight,
            "order": self.order,
            "technologies": list(self.technologies),
            "site_types": list(self.site_types),
        }


# ═════════════════════════════════════════════════════════════════════════════
# Phases, weights, site types, technologies, areas
# ═════════════════════════════════════════════════════════════════════════════

PHASES: dict[str, Phase] = {
    p.key: p for p in (
        Phase("documentation", "Brief del Proyecto", 1, "product"),
        Phase("planning", "Equipo y Cronograma", 2, "product"),
        Phase("ux_ui", "Creatividad - Brand y Look & Feel", 3, "creativity"),
        Phase("content", "Creatividad - Copy y Contenido", 4, "creativity"),
        Phase("technical", "Software - Stack y Requerimientos", 5, "software"),
        Phase("development", "Software - Desarrollo", 6, "software"),
        Phase("performance", "Software - Performance", 7, "software"),
        Phase("seo_accessibility", "SEO - Keywords y Arquitectura", 8, "seo"),
        Phase("responsive", "QA - Responsive", 9, "qa"),
        Phase("qa", "QA - Testing", 10, "qa"),
        Phase("security", "Software - Seguridad", 11, "software"),
        Phase("delivery", "Entrega Final", 12, "product"),
    )
}

WEIGHT_CONFIG: dict[str, WeightLevel] = {
    w.key: w for w in (
        WeightLevel("low", "Bajo", 1),
        WeightLevel("medium", "Medio", 2),
        WeightLevel("high", "Alto", 3),
        WeightLevel("critical", "Crítico", 4),
    )
}

# One-step escalation applied to items in a site type's critical phases.
# ``low`` and ``critical`` are intentionally absent: they never move.
WEIGHT_ESCALATION: dict[str, str] = {
    "medium": "high",
    "high": "critical",
}

SITE_TYPE_CONFIG: dict[str, SiteType] = {
    s.key: s for s in (
        SiteType("landing", "Landing Page",
                 ("documentation", "ux_ui", "responsive", "performance")),
        SiteType("ecommerce", "E-commerce",
                 ("documentation", "technical", "performance", "qa", "security")),
        SiteType("corporate", "Corporativo",
                 ("documentation", "planning", "ux_ui", "content")),
        SiteType("blog", "Blog",
                 ("documentation", "content", "performance", "responsive")),
        SiteType("forms", "Formularios",
                 ("qa", "security", "development")),
        SiteType("webapp", "Web App",
                 ("security", "qa", "performance")),
    )
}

TECHNOLOGY_CONFIG: dict[str, str] = {
    "wordpress": "WordPress",
    "webflow": "Webflow",
    "custom": "Custom",
    "shopify": "Shopify",
}

# Areas a project can opt in or out of. Product and QA phases are always on.
SELECTABLE_AREAS: dict[str, str] = {
    "creativity": "Creatividad",
    "software": "Software/Desarrollo",
    "seo": "SEO",
    "marketing": "Marketing",
    "paid": "Paid Media",
    "social": "Social Media",
}
ALWAYS_ON_AREAS = frozenset({"product", "qa"})


def _t(phase, title, weight, order, technologies=(ALL,), site_types=(ALL,)):
    return ChecklistItemTemplate(phase, title, weight, order, tuple(technologies), tuple(site_types))


# ═════════════════════════════════════════════════════════════════════════════
# Master checklist
# ═════════════════════════════════════════════════════════════════════════════

CHECKLIST_TEMPLATE: tuple[ChecklistItemTemplate, ...] = (
    # 1. Brief del proyecto
    _t("documentation", "Objetivos de negocio y generalidades del proyecto", "critical", 1),
    _t("documentation", "Contexto y Antecedentes del proyecto", "critical", 2),
    _t("documentation", "Entregables: Listado táctico de qué se va a recibir", "critical", 3),
    _t("documentation", "Hoja de vida del proyecto cargada", "critical", 4),
    _t("documentation", "Insumos base recopilados y organizados", "high", 5),

    # 2. Equipo y cronograma
    _t("planning", "Equipo y roles: Quién aprueba, quién ejecuta por área", "critical", 1),
    _t("planning", "Clientes y stakeholders identificados", "critical", 2),
    _t("planning", "Cronograma del proyecto definido", "critical", 3),
    _t("planning", "Canal único de comunicación definido", "high", 4),
    _t("planning", "Repositorio centralizado de insumos", "high", 5),

    # 3. Creatividad - brand y look & feel
    _t("ux_ui", "Brand Guidelines: Manual de marca, logos y tipografías", "critical", 1),
    _t("ux_ui", "Look & Feel / Referencias visuales definidas", "critical", 2),
    _t("ux_ui", "Diseño responsive (mobile, tablet, desktop)", "critical", 3),
    _t("ux_ui", "Estados especiales diseñados (error, hover, success)", "high", 4),
    _t("ux_ui", "Prototipo del diseño disponible", "high", 5),
    _t("ux_ui", "Referentes para animaciones especificados", "medium", 6),
    _t("ux_ui", "Check de revisión de accesibilidad completado", "high", 7),
    _t("ux_ui", "Visualización de textos extensos contemplada", "medium", 8),
    _t("ux_ui", "CTA claros y destacados", "critical", 9, site_types=("landing",)),

    # 4. Creatividad - copy y contenido
    _t("content", "Tono de Voz: ¿Cómo habla el proyecto?", "critical", 1),
    _t("content", "Copy base: Textos mínimos obligatorios", "critical", 2),
    _t("content", "Textos finales aprobados por cliente", "critical", 3),
    _t("content", "Idioma(s) definidos", "high", 4),
    _t("content", "Assets multimedia cargados y organizados", "critical", 5),
    _t("content", "Imágenes optimizadas para web", "high", 6),

    # 5. Software - stack y requerimientos
    _t("technical", "Stack tecnológico: Lenguaje o plataforma definida", "critical", 1),
    _t("technical", "Requerimientos funcionales: Casos de uso documentados", "critical", 2),
    _t("technical", "Accesos y credenciales: Servidores, GitHub/Bitbucket, APIs", "critical", 3),
    _t("technical", "Entornos: Dev, Staging y Producción definidos", "critical", 4),
    _t("technical", "Criterios de aceptación: Cuándo una tarea está lista", "high", 5),
    _t("technical", "Diseño mobile y desktop disponible", "critical", 6),
    _t("technical", "Prototipo del diseño verificado", "high", 7),
    _t("technical", "Visualización de textos extensos contemplada", "medium", 8),
    _t("technical", "Referentes de animaciones claros", "medium", 9),
    _t("technical", "Check de accesibilidad del diseño realizado", "high", 10),

    # 6. Software - desarrollo
    _t("development", "Código limpio y comentado", "high", 1),
    _t("development", "Componentes reutilizables implementados", "medium", 2),
    _t("development", "Validaciones de formularios", "critical", 3),
    _t("development", "Manejo de errores implementado", "high", 4),
    _t("development", "Funcionalidades testeadas internamente", "high", 5),
    _t("development", "Ambiente de producción: Dominio final", "critical", 6),
    _t("development", "Certificados SSL configurados", "critical", 7),
    _t("development", "Accesos al servidor de producción", "critical", 8),
    _t("development", "Credenciales de producción de herramientas", "critical", 9),
    _t("development", "Backups configurados (ambiente y BD)", "high", 10),
    _t("development", "Docker de producción configurado", "high", 11, technologies=("custom",)),
    _t("development", "SEO y Analytics: Tags y Scripts implementados", "critical", 12),

    # 7. Software - performance
    _t("performance", "Imágenes optimizadas", "critical", 1),
    _t("performance", "Lazy loading implementado", "high", 2),
    _t("performance", "Core Web Vitals > 90", "critical", 3),
    _t("performance", "CSS/JS minificado", "high", 4),
    _t("performance", "Caché configurado", "high", 5),
    _t("performance", "CDN implementado", "medium", 6),

    # 8. SEO - keywords y arquitectura
    _t("seo_accessibility", "Keyword research inicial: Palabras clave principales", "critical", 1),
    _t("seo_accessibility", "Arquitectura de información: Mapa de navegación", "critical", 2),
    _t("seo_accessibility", "Estructura de URLs definida", "high", 3),
    _t("seo_accessibility", "Herramientas de medición: Google Search Console", "critical", 4),
    _t("seo_accessibility", "Acceso a Google Analytics (GA4)", "critical", 5),
    _t("seo_accessibility", "Benchmarking SEO: Competencia identificada", "high", 6),
    _t("seo_accessibility", "Redirecciones: Listado de URLs antiguas (migración)", "critical", 7),
    _t("seo_accessibility", "Meta tags configurados", "high", 8),
    _t("seo_accessibility", "Alt text en imágenes", "high", 9),
    _t("seo_accessibility", "Sitemap XML generado", "medium", 10),

    # 9. QA - responsive
    _t("responsive", "Mobile first implementado", "critical", 1),
    _t("responsive", "Breakpoints testeados (mobile, tablet, desktop)", "critical", 2),
    _t("responsive", "Touch targets adecuados", "high", 3),
    _t("responsive", "Imágenes responsive", "high", 4),
    _t("responsive", "Menú mobile funcional", "critical", 5),

    # 10. QA - testing
    _t("qa", "Cross-browser testing completado", "high", 1),
    _t("qa", "Links verificados (no rotos)", "high", 2),
    _t("qa", "Formularios testeados end-to-end", "critical", 3),
    _t("qa", "Flujo de compra verificado", "critical", 4, site_types=("ecommerce",)),
    _t("qa", "Contenido revisado (ortografía y gramática)", "medium", 5),
    _t("qa", "Conversiones trackeadas correctamente", "high", 6),
    _t("qa", "Accesibilidad – Contraste de colores WCAG", "high", 7),
    _t("qa", "Accesibilidad – Navegación por teclado", "medium", 8),

    # 11. Software - seguridad
    _t("security", "SSL/HTTPS activo", "critical", 1),
    _t("security", "Protección contra spam implementada", "high", 2),
    _t("security", "Backups configurados", "high", 3),
    _t("security", "Datos sensibles protegidos", "critical", 4),
    _t("security", "Actualizaciones de seguridad aplicadas", "high", 5),
    _t("security", "Pasarela de pago segura", "critical", 6, site_types=("ecommerce",)),

    # 12. Entrega final
    _t("delivery", "Documentación entregada", "high", 1),
    _t("delivery", "Capacitación realizada", "medium", 2),
    _t("delivery", "Credenciales entregadas", "high", 3),
    _t("delivery", "Plan de mantenimiento acordado", "medium", 4),
    _t("delivery", "Aprobación final del cliente", "critical", 5),
)


# ═════════════════════════════════════════════════════════════════════════════
# Lookups
# ═════════════════════════════════════════════════════════════════════════════

def critical_phases_for(site_type: str) -> tuple[str, ...]:
    """Return the site type's critical phases; unknown site types have none."""
    cfg = SITE_TYPE_CONFIG.get(site_type)
    return cfg.critical_phases if cfg else ()


def phase_area(phase: str) -> str | None:
    p = PHASES.get(phase)
    return p.area if p else None


def phases_in_order() -> list[Phase]:
    return sorted(PHASES.values(), key=lambda p: p.order)


def catalog_summary() -> dict:
    """Serializable snapshot of the catalogue for API consumers."""
    return {
        "phases": [p.to_dict() for p in phases_in_order()],
        "weights": {k: {"label": w.label, "priority": w.priority} for k, w in WEIGHT_CONFIG.items()},
        "site_types": {
            k: {"name": s.name, "critical_phases": list(s.critical_phases)}
            for k, s in SITE_TYPE_CONFIG.items()
        },
        "technologies": dict(TECHNOLOGY_CONFIG),
        "areas": dict(SELECTABLE_AREAS),
        "item_count": len(CHECKLIST_TEMPLATE),
    }
