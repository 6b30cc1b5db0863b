"""
Pet helpers: age calculation, microchip validation, summaries
"""

import re
from datetime import date
from typing import Optional
from dateutil.relativedelta import relativedelta

# ISO 11784/11785 chips are 15 digits, older AVID/FECAVA chips 10,
# some vendors use 10-15 alphanumerics
MICROCHIP_PATTERNS = [
    re.compile(r"^\d{15}$"),
    re.compile(r"^\d{10}$"),
    re.compile(r"^[A-Z0-9]{10,15}$"),
]


def calculate_age(date_of_birth: Optional[date], on: Optional[date] = None) -> Optional[dict]:
    """
    Age as whole years and remaining months

    Returns None when the birth date is unknown.
    """
    if date_of_birth is None:
        return None

    on = on or date.today()
    if on < date_of_birth:
        return {"years": 0, "months": 0}

    delta = relativedelta(on, date_of_birth)
    return {"years": delta.years, "months": delta.months}


def format_age(age: Optional[dict]) -> str:
    """Human readable age, e.g. '2 years 3 months'"""
    if age is None:
        return "Unknown"

    parts = []
    if age["years"]:
        parts.append(f"{age['years']} year{'s' if age['years'] != 1 else ''}")
    if age["months"] or not parts:
        parts.append(f"{age['months']} month{'s' if age['months'] != 1 else ''}")
    return " ".join(parts)


def is_valid_microchip(value: str) -> bool:
    """Check a microchip id against the known formats"""
    cleaned = re.sub(r"[\s-]", "", value).upper()
    return any(p.match(cleaned) for p in MICROCHIP_PATTERNS)


def normalize_microchip(value: str) -> str:
    """Strip separators and upper-case; raise ValueError on bad ids"""
    cleaned = re.sub(r"[\s-]", "", value).upper()
    if not any(p.match(cleaned) for p in MICROCHIP_PATTERNS):
        raise ValueError("Microchip ID must be 15 digits, 10 digits or 10-15 alphanumeric characters")
    return cleaned


def pet_summary(pet) -> dict:
    """Compact view of a pet for lists and appointment cards"""
    age = calculate_age(pet.date_of_birth)
    return {
        "pet_id": pet.pet_id,
        "name": pet.name,
        "species": pet.species.value,
        "breed": pet.breed,
        "age": format_age(age),
        "weight": f"{pet.weight.value:g} {pet.weight.unit.value}" if pet.weight else None,
        "allergies": list(pet.medical.allergies),
        "has_medical_conditions": bool(pet.medical.conditions),
        "microchipped": bool(pet.microchip_id),
    }
