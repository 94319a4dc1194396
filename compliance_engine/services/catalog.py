"""Built-in document catalogs used when the backend catalog is unreachable."""

from __future__ import annotations

from typing import Any

from compliance_engine.models import SubjectKind

_ANNUAL = "Annual renewal required"
_THREE_YEARS = "Valid for 3 years"


def _training(key: str, name: str, years: int) -> dict[str, Any]:
    return {
        "key": key,
        "name": name,
        "category": "training",
        "required": True,
        "autoExpiry": True,
        "validityYears": years,
        "note": _ANNUAL if years == 1 else _THREE_YEARS,
    }


DOCTOR_DOCUMENT_TYPES: list[dict[str, Any]] = [
    {"key": "gmc-registration", "name": "GMC Registration Certificate", "category": "registration"},
    {
        "key": "current-performers-list",
        "name": "Current Performers List",
        "category": "registration",
    },
    {
        "key": "cct-certificate",
        "name": "Certificate for completion of training (CCT)",
        "category": "certificate",
    },
    {"key": "medical-indemnity", "name": "Medical Indemnity Insurance", "category": "insurance"},
    {
        "key": "dbs-check",
        "name": "Enhanced DBS (Disclosure and Barring Service) Check",
        "category": "compliance",
        "autoExpiry": True,
        "validityYears": 3,
    },
    {
        "key": "right-to-work",
        "name": "Right to Work in the UK (Passport/Visa if applicable)",
        "category": "identity",
    },
    {
        "key": "photo-id",
        "name": "Photo ID (Passport or UK Driving Licence)",
        "category": "identity",
        "note": "For identity verification",
    },
    {
        "key": "gp-cv",
        "name": "GP CV",
        "category": "professional",
        "acceptedFormats": ".pdf,.doc,.docx",
    },
    {
        "key": "occupational-health",
        "name": "Occupational Health Clearance",
        "category": "clearance",
        "note": "Proof of immunisations",
    },
    {
        "key": "professional-references",
        "name": "Professional References",
        "category": "professional",
        "kind": "references",
        "note": "2 references (including 1 clinical) from the past two years",
    },
    {
        "key": "appraisal-revalidation",
        "name": "Appraisal & Revalidation Evidence",
        "category": "professional",
    },
    _training("basic-life-support", "Basic Life Support (BLS) + Anaphylaxis", 1),
    _training("level3-adult-safeguarding", "Level 3 Adult Safeguarding", 3),
    _training("level3-child-safeguarding", "Level 3 Child Safeguarding", 3),
    _training("information-governance", "Information Governance (IG) & GDPR", 1),
    _training("autism-learning-disability", "Autism and Learning Disability (Oliver McGowen)", 3),
    _training("equality-diversity", "Equality, Diversity and Human Rights", 3),
    _training("health-safety-welfare", "Health, Safety and Welfare", 1),
    _training("conflict-resolution", "Conflict Resolution and Handling Complaints", 3),
    _training("fire-safety", "Fire Safety", 1),
    _training("infection-prevention", "Infection Prevention and Control", 1),
    _training("moving-handling", "Moving and Handling", 1),
    _training("preventing-radicalisation", "Preventing Radicalisation", 3),
]

BUSINESS_DOCUMENT_TYPES: list[dict[str, Any]] = [
    {
        "key": "business-license",
        "name": "Business License",
        "description": "Valid business registration/license document",
        "category": "registration",
        "autoExpiry": True,
        "examples": "Business registration certificate, trading license",
    },
    {
        "key": "insurance-certificate",
        "name": "Insurance Certificate",
        "description": "Professional liability insurance certificate",
        "category": "insurance",
        "autoExpiry": True,
        "examples": "Professional indemnity insurance, public liability insurance",
    },
    {
        "key": "tax-certificate",
        "name": "Tax Registration Certificate",
        "description": "Tax registration or VAT certificate",
        "category": "financial",
        "autoExpiry": True,
        "examples": "VAT registration, tax identification certificate",
    },
    {
        "key": "health-safety-certificate",
        "name": "Health & Safety Certificate",
        "description": "Health and safety compliance certificate",
        "category": "compliance",
        "autoExpiry": True,
        "examples": "HSE compliance certificate, workplace safety certification",
    },
    {
        "key": "data-protection-certificate",
        "name": "Data Protection Certificate",
        "description": "GDPR/Data protection compliance certificate",
        "category": "compliance",
        "autoExpiry": True,
        "examples": "Data protection certification, GDPR compliance certificate",
    },
]

FALLBACK_CATALOGS: dict[SubjectKind, list[dict[str, Any]]] = {
    SubjectKind.DOCTOR: DOCTOR_DOCUMENT_TYPES,
    SubjectKind.BUSINESS: BUSINESS_DOCUMENT_TYPES,
}
