from __future__ import annotations
import re
from typing import Dict, List

from .schemas import DIFFICULTY_LEVELS

GRADES: List[Dict[str, str]] = [
	{"code": "G1", "text": "Grade 1"},
	{"code": "G2", "text": "Grade 2"},
	{"code": "G3", "text": "Grade 3"},
	{"code": "G4", "text": "Grade 4"},
]

# Topic codes are the grade code plus a letter, e.g. G3A
TOPIC_LETTERS: Dict[str, str] = {
	"A": "Number System",
	"B": "Operations (Addition, Subtraction ....)",
	"C": "Shapes and Geometry",
	"D": "Measurement",
	"E": "Data Handling",
	"F": "Maths Puzzles",
	"G": "Real Life all concept sums",
}

UNKNOWN_GRADE = "UNKNOWN"


def normalize_grade(grade: object) -> str:
	"""Canonical grade code: ``3``, ``Grade 3`` and ``g3`` all become ``G3``."""
	if grade is None or grade == "":
		return UNKNOWN_GRADE
	g = str(grade).strip().upper()
	if re.fullmatch(r"G\d+", g):
		return g
	m = re.fullmatch(r"GRADE\s*(\d+)", g)
	if m:
		return f"G{m.group(1)}"
	if re.fullmatch(r"\d+", g):
		return f"G{g}"
	return UNKNOWN_GRADE


def topics_for(grade: str) -> List[Dict[str, str]]:
	code = normalize_grade(grade)
	return [{"grade": code, "code": f"{code}{letter}", "text": text} for letter, text in TOPIC_LETTERS.items()]


def catalog() -> Dict[str, object]:
	return {
		"grades": GRADES,
		"topics": [t for g in GRADES for t in topics_for(g["code"])],
		"difficultyLevels": list(DIFFICULTY_LEVELS),
	}
