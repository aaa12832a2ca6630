"""
Reference Data

Static lookup tables used to seed the closed dimensions and to canonicalize
raw attribute labels. Changing AGE_GROUP_MAPPING must stay consistent with
AGE_GROUPS: a raw label mapped to a code that is not seeded fails its lookup.
"""

from typing import Dict, List, Tuple

# name -> (region, continent)
REGION_MAPPING: Dict[str, Tuple[str, str]] = {
    "China": ("East Asia", "Asia"),
    "India": ("South Asia", "Asia"),
    "Philippines": ("Southeast Asia", "Asia"),
    "United Kingdom": ("Northern Europe", "Europe"),
    "Australia": ("Oceania", "Oceania"),
    "United States of America": ("North America", "North America"),
    "South Africa": ("Southern Africa", "Africa"),
    "Germany": ("Western Europe", "Europe"),
    "Japan": ("East Asia", "Asia"),
    "South Korea": ("East Asia", "Asia"),
    "Korea, Republic of": ("East Asia", "Asia"),
    "Vietnam": ("Southeast Asia", "Asia"),
    "Malaysia": ("Southeast Asia", "Asia"),
    "Thailand": ("Southeast Asia", "Asia"),
    "Indonesia": ("Southeast Asia", "Asia"),
    "Singapore": ("Southeast Asia", "Asia"),
    "France": ("Western Europe", "Europe"),
    "Canada": ("North America", "North America"),
    "Brazil": ("South America", "South America"),
    "New Zealand": ("Oceania", "Oceania"),
    "Afghanistan": ("South Asia", "Asia"),
    "Russia": ("Eastern Europe", "Europe"),
    "Mexico": ("North America", "North America"),
    "Argentina": ("South America", "South America"),
}

UNKNOWN_REGION: Tuple[str, str] = ("Other", "Other")

# (code, name, min_age, max_age, generation)
AGE_GROUPS: List[Tuple[str, str, int, int, str]] = [
    ("0-9", "0-9 years", 0, 9, "Gen Alpha"),
    ("10-19", "10-19 years", 10, 19, "Gen Z"),
    ("20-29", "20-29 years", 20, 29, "Gen Z/Millennial"),
    ("30-39", "30-39 years", 30, 39, "Millennial"),
    ("40-49", "40-49 years", 40, 49, "Gen X"),
    ("50-59", "50-59 years", 50, 59, "Gen X"),
    ("60-69", "60-69 years", 60, 69, "Baby Boomer"),
    ("70+", "70+ years", 70, 120, "Silent/Greatest"),
]

# Raw five-year brackets -> AGE_GROUPS code. "65+ years" overlaps two
# buckets in the source and is filed under 70+.
AGE_GROUP_MAPPING: Dict[str, str] = {
    "0-4 years": "0-9",
    "5-9 years": "0-9",
    "10-14 years": "10-19",
    "15-19 years": "10-19",
    "20-24 years": "20-29",
    "25-29 years": "20-29",
    "30-34 years": "30-39",
    "35-39 years": "30-39",
    "40-44 years": "40-49",
    "45-49 years": "40-49",
    "50-54 years": "50-59",
    "55-59 years": "50-59",
    "60-64 years": "60-69",
    "65-69 years": "60-69",
    "65+ years": "70+",
    "70-74 years": "70+",
    "75+ years": "70+",
}

# (code, name)
GENDERS: List[Tuple[str, str]] = [
    ("M", "Male"),
    ("F", "Female"),
    ("O", "Other"),
    ("U", "Unknown"),
]

# (code, name, category, description)
VISA_TYPES: List[Tuple[str, str, str, str]] = [
    ("WORK", "Work Visa", "Temporary", "Visa for employment purposes"),
    ("STUDENT", "Student Visa", "Temporary", "Visa for educational purposes"),
    ("RESIDENT", "Resident Visa", "Permanent", "Permanent residency visa"),
    ("VISITOR", "Visitor Visa", "Temporary", "Tourism and short visits"),
    ("FAMILY", "Family Visa", "Permanent", "Family reunification"),
    ("BUSINESS", "Business Visa", "Temporary", "Business activities"),
    ("SKILLED", "Skilled Migrant", "Permanent", "Skilled worker category"),
    ("OTHER", "Other", "Other", "Other visa categories"),
]

MONTH_NAMES: List[str] = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
