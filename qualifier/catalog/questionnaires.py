"""
qualifier/catalog/questionnaires.py — The built-in question catalog.

  DEFAULT_QUESTIONNAIRE      → the initial onboarding pass (6 questions)
  QUALIFIED_LEAD_FOLLOW_UP   → role / budget / decision questions for hot leads
  TECHNICAL_ASSESSMENT       → infrastructure questions for warm leads
  COMPLIANCE_DEEP_DIVE       → data & audit questions for nurturing
  QUESTIONNAIRE_VERSIONS     → release history of the initial questionnaire

Question text is Spanish because the engagement keyword table is.
"""

from qualifier.catalog.models import (
    Question,
    QuestionnaireConfig,
    QuestionOption,
    QuestionType,
    ScoringConfig,
    ScoringRules,
    SessionType,
    TextEngagementBonus,
    Thresholds,
)
from qualifier.catalog.versioning import MigrationStrategy, MigrationStrategyType, QuestionnaireVersion


def _opts(*entries: tuple) -> tuple[QuestionOption, ...]:
    """Build options from (value, label) or (value, label, score) tuples."""
    return tuple(
        QuestionOption(value=e[0], label=e[1], score=e[2] if len(e) > 2 else None)
        for e in entries
    )


# ── Initial questionnaire ────────────────────────────────────────────────────

DEFAULT_QUESTIONNAIRE = QuestionnaireConfig(
    version=2,
    questions=(
        Question(
            id="recent_incidents",
            type=QuestionType.SINGLE_CHOICE,
            required=True,
            question="¿Has tenido incidentes de ciberseguridad en los últimos 12 meses?",
            options=_opts(
                ("urgent", "Sí, y necesitamos ayuda urgente", 35),
                ("resolved", "Sí, pero ya lo resolvimos", 20),
                ("preventive", "No, pero queremos prevenirlo", 10),
                ("unsure", "No estoy seguro", 5),
            ),
            scoring_weight={"urgency": 1.0},
        ),
        Question(
            id="main_concern",
            type=QuestionType.SINGLE_CHOICE,
            required=True,
            question="¿Cuál es tu principal preocupación en ciberseguridad?",
            options=(
                QuestionOption(value="security_level", label="No sé mi nivel actual de seguridad", score=15, service="maturity_analysis"),
                QuestionOption(value="vulnerabilities", label="Quiero verificar vulnerabilidades", score=20, service="pentest"),
                QuestionOption(value="no_team", label="No tengo equipo de seguridad", score=25, service="virtual_ciso"),
                QuestionOption(value="incident_response", label="Necesito respuesta ante incidentes", score=30, service="forensic_analysis"),
            ),
            scoring_weight={"urgency": 0.5, "fit": 1.0},
        ),
        Question(
            id="company_size",
            type=QuestionType.SINGLE_CHOICE,
            required=True,
            question="¿Cuál es el tamaño de tu empresa?",
            options=_opts(
                ("1-10", "1-10 empleados", 10),
                ("11-50", "11-50 empleados", 15),
                ("51-200", "51-200 empleados", 20),
                ("200+", "+200 empleados", 25),
            ),
            scoring_weight={"budget": 1.0},
        ),
        Question(
            id="implementation_timeline",
            type=QuestionType.SINGLE_CHOICE,
            required=True,
            question="¿Cuándo planeas implementar mejoras de seguridad?",
            options=_opts(
                ("immediate", "Inmediatamente (este mes)", 30),
                ("quarter", "Este trimestre", 20),
                ("year", "Este año", 10),
                ("exploring", "Solo estoy explorando opciones", 5),
            ),
            scoring_weight={"urgency": 1.0, "engagement": 0.5},
        ),
        Question(
            id="compliance",
            type=QuestionType.MULTIPLE_CHOICE,
            required=True,
            question="¿Qué requerimientos de cumplimiento normativo tienes?",
            options=_opts(
                ("gdpr", "GDPR / LOPD"),
                ("iso27001", "ISO 27001"),
                ("ens", "ENS (Esquema Nacional de Seguridad)"),
                ("nis2", "NIS-2"),
                ("pci", "PCI-DSS"),
                ("none", "Ninguno / No lo sé"),
            ),
            allow_other=True,
            scoring_weight={"fit": 1.0},
        ),
        Question(
            id="specific_needs",
            type=QuestionType.TEXT_AREA,
            required=False,
            question="¿Tienes alguna necesidad específica o proyecto de ciberseguridad en mente?",
            placeholder="Cuéntanos más sobre tu situación actual o lo que necesitas...",
            max_length=500,
            scoring_weight={"engagement": 1.0},
        ),
    ),
    scoring=ScoringRules(
        thresholds=Thresholds(A1=80, B1=55, C1=30, D1=0),
        components={
            "urgency": 0.5,
            "budget": 0.6,
            "fit": 0.5,
            "engagement": 0.2,
            "decision": 0.4,    # only follow-up questions feed it
        },
        text_engagement_bonus=TextEngagementBonus(),
    ),
)


# ── Follow-up sets ───────────────────────────────────────────────────────────

QUALIFIED_LEAD_FOLLOW_UP: tuple[Question, ...] = (
    Question(
        id="it_team",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Tienes equipo IT interno?",
        options=_opts(
            ("dedicated", "Sí, equipo dedicado de IT", 5),
            ("small", "Sí, pero solo 1-2 personas", 3),
            ("external", "No, lo gestionamos externamente", 2),
            ("none", "No tenemos equipo IT", 1),
        ),
        scoring_weight={"decision": 1.0},
    ),
    Question(
        id="sector",
        type=QuestionType.SINGLE_CHOICE,
        question="¿En qué sector opera tu empresa?",
        options=_opts(
            ("finance", "Finanzas / Banca"),
            ("health", "Salud / Farmacéutica"),
            ("retail", "Retail / E-commerce"),
            ("tech", "Tecnología / Software"),
            ("manufacturing", "Manufactura / Industria"),
            ("education", "Educación"),
            ("government", "Gobierno / Sector Público"),
            ("other", "Otro"),
        ),
        scoring_weight={"engagement": 0.02},
    ),
    Question(
        id="security_budget",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Cuál es tu presupuesto anual aproximado para ciberseguridad?",
        options=_opts(
            ("none", "No tenemos presupuesto asignado", 0),
            ("under_10k", "Menos de 10.000€", 5),
            ("10k_50k", "10.000€ - 50.000€", 10),
            ("50k_100k", "50.000€ - 100.000€", 15),
            ("over_100k", "Más de 100.000€", 20),
        ),
        scoring_weight={"budget": 1.0, "engagement": 0.1},
    ),
    Question(
        id="decision_capacity",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Tienes capacidad de decisión sobre contrataciones de seguridad?",
        options=_opts(
            ("full", "Sí, decido directamente", 10),
            ("influence", "Influyo en la decisión", 7),
            ("recommend", "Hago recomendaciones", 4),
            ("none", "No participo en decisiones", 1),
        ),
        scoring_weight={"decision": 1.0},
    ),
    Question(
        id="role",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Cuál es tu rol en la empresa?",
        options=_opts(
            ("ceo", "CEO / Director General", 10),
            ("cto", "CTO / Director de Tecnología", 10),
            ("ciso", "CISO / Responsable de Seguridad", 10),
            ("it_manager", "IT Manager / Responsable IT", 8),
            ("other_manager", "Otro cargo directivo", 5),
            ("technical", "Técnico / Especialista", 3),
            ("other", "Otro", 1),
        ),
        scoring_weight={"decision": 1.0},
    ),
)

TECHNICAL_ASSESSMENT: tuple[Question, ...] = (
    Question(
        id="critical_systems",
        type=QuestionType.MULTIPLE_CHOICE,
        question="¿Qué sistemas críticos utilizas?",
        options=_opts(
            ("erp", "ERP (SAP, Oracle, etc.)"),
            ("crm", "CRM (Salesforce, HubSpot, etc.)"),
            ("cloud", "Servicios en la nube (AWS, Azure, Google Cloud)"),
            ("databases", "Bases de datos críticas"),
            ("ecommerce", "Plataforma de e-commerce"),
            ("custom", "Aplicaciones propias/personalizadas"),
        ),
        allow_other=True,
        scoring_weight={"engagement": 0.01},
    ),
    Question(
        id="backup_status",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Cuál es el estado de tus copias de seguridad?",
        options=_opts(
            ("automated", "Automatizadas y probadas regularmente"),
            ("automated_not_tested", "Automatizadas pero no probadas"),
            ("manual", "Manuales y ocasionales"),
            ("none", "No tenemos sistema de backups"),
        ),
        scoring_weight={"engagement": 0.01},
    ),
    Question(
        id="mfa_status",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Usas autenticación multifactor (MFA)?",
        options=_opts(
            ("all", "Sí, en todos los sistemas críticos"),
            ("some", "Sí, en algunos sistemas"),
            ("planning", "No, pero lo estamos planificando"),
            ("none", "No usamos MFA"),
        ),
        scoring_weight={"engagement": 0.01},
    ),
    Question(
        id="incident_plan",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Tienes un plan de respuesta ante incidentes?",
        options=_opts(
            ("tested", "Sí, documentado y probado"),
            ("documented", "Sí, pero nunca lo hemos probado"),
            ("informal", "Tenemos procedimientos informales"),
            ("none", "No tenemos plan"),
        ),
        scoring_weight={"engagement": 0.01},
    ),
    Question(
        id="security_training",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Proporcionas formación en ciberseguridad a tus empleados?",
        options=_opts(
            ("regular", "Sí, regularmente (mensual/trimestral)"),
            ("annual", "Sí, anualmente"),
            ("onboarding", "Solo en el onboarding"),
            ("none", "No proporcionamos formación"),
        ),
        scoring_weight={"engagement": 0.01},
    ),
)

COMPLIANCE_DEEP_DIVE: tuple[Question, ...] = (
    Question(
        id="sensitive_data",
        type=QuestionType.MULTIPLE_CHOICE,
        question="¿Qué tipo de datos sensibles manejas?",
        options=_opts(
            ("personal", "Datos personales de clientes"),
            ("financial", "Información financiera"),
            ("health", "Datos de salud"),
            ("intellectual", "Propiedad intelectual"),
            ("government", "Información gubernamental"),
            ("none", "No manejamos datos sensibles"),
        ),
        scoring_weight={"engagement": 0.02},
    ),
    Question(
        id="third_parties",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Trabajas con proveedores o terceros que acceden a tus sistemas?",
        options=_opts(
            ("many", "Sí, más de 10 proveedores"),
            ("some", "Sí, entre 3-10 proveedores"),
            ("few", "Sí, 1-2 proveedores"),
            ("none", "No trabajamos con terceros"),
        ),
        scoring_weight={"engagement": 0.01},
    ),
    Question(
        id="previous_audits",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Has realizado auditorías de seguridad previamente?",
        options=_opts(
            ("never", "Nunca"),
            ("over_2_years", "Hace más de 2 años"),
            ("last_year", "En el último año"),
            ("recently", "En los últimos 6 meses"),
        ),
        scoring_weight={"engagement": 0.01},
    ),
    Question(
        id="cyber_insurance",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Tienes seguro de ciberriesgos?",
        options=_opts(
            ("comprehensive", "Sí, con cobertura completa"),
            ("basic", "Sí, con cobertura básica"),
            ("considering", "Lo estamos considerando"),
            ("none", "No tenemos seguro"),
        ),
        scoring_weight={"engagement": 0.01},
    ),
    Question(
        id="critical_users",
        type=QuestionType.SINGLE_CHOICE,
        question="¿Cuántos usuarios tienen acceso a sistemas críticos?",
        options=_opts(
            ("under_5", "Menos de 5"),
            ("5_20", "Entre 5 y 20"),
            ("20_50", "Entre 20 y 50"),
            ("over_50", "Más de 50"),
        ),
        scoring_weight={"engagement": 0.01},
    ),
)


FOLLOW_UP_SETS: dict[SessionType, tuple[Question, ...]] = {
    SessionType.FOLLOW_UP_QUALIFIED: QUALIFIED_LEAD_FOLLOW_UP,
    SessionType.TECHNICAL_ASSESSMENT: TECHNICAL_ASSESSMENT,
    SessionType.COMPLIANCE_DEEP_DIVE: COMPLIANCE_DEEP_DIVE,
}

FOLLOW_UP_QUESTIONS: tuple[Question, ...] = (
    *QUALIFIED_LEAD_FOLLOW_UP,
    *TECHNICAL_ASSESSMENT,
    *COMPLIANCE_DEEP_DIVE,
)


def questions_for(session_type: SessionType) -> tuple[Question, ...]:
    """Questions a session of the given type walks through."""
    if session_type == SessionType.INITIAL:
        return DEFAULT_QUESTIONNAIRE.questions
    return FOLLOW_UP_SETS[session_type]


def full_scoring_config(questionnaire: QuestionnaireConfig = DEFAULT_QUESTIONNAIRE) -> ScoringConfig:
    """Scoring config covering the initial questionnaire and every follow-up set."""
    return questionnaire.scoring_config(FOLLOW_UP_QUESTIONS)


# ── Release history ──────────────────────────────────────────────────────────

# v1 shipped without the free-text question; v2 appended it.
QUESTIONNAIRE_VERSIONS: tuple[QuestionnaireVersion, ...] = (
    QuestionnaireVersion(version=1, questions=DEFAULT_QUESTIONNAIRE.questions[:5]),
    QuestionnaireVersion.from_config(
        DEFAULT_QUESTIONNAIRE,
        MigrationStrategy(type=MigrationStrategyType.APPEND_ONLY, new_questions=("specific_needs",)),
    ),
)
