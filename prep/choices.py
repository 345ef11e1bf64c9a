# prep/choices.py
from django.db import models


class Subject(models.TextChoices):
    MEDICINE = "Medicine"
    SURGERY = "Surgery"
    OB_GYN = "OB-GYN"
    PEDIATRICS = "Pediatrics"
    PATHOLOGY = "Pathology"
    PHARMACOLOGY = "Pharmacology"
    BIOCHEMISTRY = "Biochemistry"
    ANATOMY = "Anatomy"
    PHYSIOLOGY = "Physiology"
    MICROBIOLOGY = "Microbiology"
    RADIOLOGY = "Radiology"
    DERMATOLOGY = "Dermatology"
    PSYCHIATRY = "Psychiatry"
    ENT = "ENT"
    OPHTHALMOLOGY = "Ophthalmology"
    ANESTHESIA = "Anesthesia"
    FORENSIC_MEDICINE = "Forensic Medicine"


class Difficulty(models.TextChoices):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Confidence(models.TextChoices):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SessionType(models.TextChoices):
    PRACTICE = "practice"
    MOCK = "mock"
