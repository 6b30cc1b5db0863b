"""
Pet Model
Pets owned by clients, with medical history and behaviour notes
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.models.common import BaseDocument, generate_id, utc_now
from app.utils.pet_utils import calculate_age, normalize_microchip


class Species(str, Enum):
    DOG = "dog"
    CAT = "cat"
    BIRD = "bird"
    RABBIT = "rabbit"
    FISH = "fish"
    REPTILE = "reptile"
    HAMSTER = "hamster"
    GUINEA_PIG = "guinea_pig"
    OTHER = "other"


class PetGender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


class PetStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DECEASED = "deceased"


class WeightUnit(str, Enum):
    KG = "kg"
    LBS = "lbs"


class MedicalRecordType(str, Enum):
    CHECKUP = "checkup"
    VACCINATION = "vaccination"
    TREATMENT = "treatment"
    SURGERY = "surgery"
    GROOMING = "grooming"
    OTHER = "other"


class Weight(BaseModel):
    value: float = Field(gt=0)
    unit: WeightUnit = WeightUnit.KG


class Medication(BaseModel):
    name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class Vaccination(BaseModel):
    name: str
    administered_on: date
    expires_at: Optional[date] = None
    veterinarian: Optional[str] = None

    def is_current(self, on: Optional[date] = None) -> bool:
        on = on or date.today()
        return self.expires_at is None or self.expires_at >= on


class EmergencyContact(BaseModel):
    name: str
    phone: str
    relationship: Optional[str] = None


class MedicalRecord(BaseModel):
    """Single entry in a pet's medical history"""
    record_id: str = Field(default_factory=lambda: generate_id("rec"))
    visit_date: date = Field(default_factory=date.today)
    type: MedicalRecordType = MedicalRecordType.CHECKUP
    description: str = Field(min_length=1)
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    veterinarian: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None


class MedicalInfo(BaseModel):
    allergies: list[str] = Field(default_factory=list)
    medications: list[Medication] = Field(default_factory=list)
    conditions: list[str] = Field(default_factory=list)
    vaccinations: list[Vaccination] = Field(default_factory=list)
    emergency_contact: Optional[EmergencyContact] = None
    records: list[MedicalRecord] = Field(default_factory=list)

    def current_vaccines(self, on: Optional[date] = None) -> set[str]:
        return {v.name.lower() for v in self.vaccinations if v.is_current(on)}


class MedicalInfoUpdate(BaseModel):
    """Owner-editable medical fields; visit records have their own endpoints"""
    allergies: Optional[list[str]] = None
    medications: Optional[list[Medication]] = None
    conditions: Optional[list[str]] = None
    vaccinations: Optional[list[Vaccination]] = None
    emergency_contact: Optional[EmergencyContact] = None


class Behavior(BaseModel):
    temperament: Optional[str] = None
    special_needs: list[str] = Field(default_factory=list)
    notes: Optional[str] = None


class Pet(BaseDocument):
    """Pet document model"""
    pet_id: str = Field(default_factory=lambda: generate_id("pet"))
    owner_id: str
    business_ids: list[str] = Field(default_factory=list)
    created_by: Optional[str] = None

    # Profile
    name: str
    species: Species
    breed: Optional[str] = None
    gender: PetGender = PetGender.UNKNOWN
    color: Optional[str] = None
    date_of_birth: Optional[date] = None
    weight: Optional[Weight] = None
    microchip_id: Optional[str] = None
    photo_urls: list[str] = Field(default_factory=list)

    medical: MedicalInfo = Field(default_factory=MedicalInfo)
    behavior: Behavior = Field(default_factory=Behavior)

    status: PetStatus = PetStatus.ACTIVE
    last_visit: Optional[datetime] = None
    total_visits: int = 0

    def age_in_months(self, on: Optional[date] = None) -> Optional[int]:
        age = calculate_age(self.date_of_birth, on)
        if age is None:
            return None
        return age["years"] * 12 + age["months"]


class PetBase(BaseModel):
    """Fields shared by create and update payloads"""
    breed: Optional[str] = Field(None, max_length=80)
    gender: Optional[PetGender] = None
    color: Optional[str] = None
    date_of_birth: Optional[date] = None
    weight: Optional[Weight] = None
    microchip_id: Optional[str] = None
    photo_urls: Optional[list[str]] = None
    medical: Optional[MedicalInfoUpdate] = None
    behavior: Optional[Behavior] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("microchip_id")
    @classmethod
    def check_microchip(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        return normalize_microchip(v)

    @field_validator("date_of_birth")
    @classmethod
    def check_birth_date(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v


class PetCreate(PetBase):
    """Schema for creating a pet"""
    name: str = Field(min_length=1, max_length=50)
    species: Species
    owner_id: Optional[str] = None  # Defaults to the caller for clients


class PetUpdate(PetBase):
    """Schema for updating a pet"""
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    species: Optional[Species] = None
    status: Optional[PetStatus] = None


class MedicalRecordCreate(BaseModel):
    visit_date: Optional[date] = None
    type: MedicalRecordType = MedicalRecordType.CHECKUP
    description: str = Field(min_length=1, max_length=2000)
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    veterinarian: Optional[str] = None
    notes: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class MedicalRecordUpdate(BaseModel):
    visit_date: Optional[date] = None
    type: Optional[MedicalRecordType] = None
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    veterinarian: Optional[str] = None
    notes: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class PetResponse(BaseModel):
    """Pet response with computed age"""
    pet_id: str
    owner_id: str
    business_ids: list[str]
    name: str
    species: Species
    breed: Optional[str] = None
    gender: PetGender
    color: Optional[str] = None
    date_of_birth: Optional[date] = None
    age: Optional[dict] = None
    weight: Optional[Weight] = None
    microchip_id: Optional[str] = None
    photo_urls: list[str]
    medical: MedicalInfo
    behavior: Behavior
    status: PetStatus
    last_visit: Optional[datetime] = None
    total_visits: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_pet(cls, pet: Pet) -> "PetResponse":
        data = pet.model_dump()
        data["age"] = calculate_age(pet.date_of_birth)
        return cls(**data)
