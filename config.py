from pathlib import Path
from typing import Dict, List

ARTIFACTS_PATH = Path("artifacts")

# Model / cause
CAUSE = 1

# Nearest-neighbour explanation constants
K_NEIGHBORS = 3
WEIGHT_EPSILON = 1e-8
UNATTRIBUTED = "Unattributed"

# Time handling (months)
CURVE_TIME_MAX = 114
CURVE_TIME_STEP = 1
DEFAULT_QUERY_TIME = 60.0
DEFAULT_EXPLANATION_TIME = "60"
# Tags offered to callers; the grid itself decides which ones exist.
EXPLANATION_TIME_TAGS = ("36", "60", "114")
ATTRIBUTION_TAG_SEPARATOR = "_t"

# Reference (average CIF) curves
BASELINE_CURVE = "overall"
DEFAULT_REFERENCE_CURVES = ("overall",)
REFERENCE_CURVE_LABELS: Dict[str, str] = {
    "overall": "Average Overall",
    "pos": "Average ORN Positive",
    "neg": "Average ORN Negative",
}
REFERENCE_TIME_COL = "Time"
REFERENCE_VALUE_COL = "MeanCIF"

# Artifact stems (see data_paths.py)
MODEL_STEM = "final_fg_model"
PREPROCESSOR_STEM = "preprocessor"
GRID_STEM = "precomputed_shap_grid"
FEATURE_SCHEMA_STEM = "feature_schema"
REFERENCE_CURVE_STEMS: Dict[str, str] = {
    "overall": "mean_cif_all",
    "pos": "mean_cif_orn_positive",
    "neg": "mean_cif_orn_negative",
}

# Feature schema of the ORN prognosis tool, in model order.
FEATURE_COLS: List[str] = [
    "Insurance_Type",
    "Node",
    "Periodontal_Grading",
    "Disease_Site_Merged_2",
    "Age",
    "Smoking_Pack_per_Year",
    "T",
    "Number_Teeth_before_Extraction",
    "RT_Dose",
    "D10cc",
]

CATEGORICAL_FEATURES: Dict[str, Dict[str, str]] = {
    "Insurance_Type": {"0": "No Insurance", "1": "Private", "2": "Public"},
    "Node": {"0": "N0", "1": "N1", "2": "N2", "3": "N3"},
    "Periodontal_Grading": {"0": "0", "1": "I", "2": "II", "3": "III", "4": "IV"},
    "Disease_Site_Merged_2": {"0": "Others", "1": "Oropharynx", "2": "Oral Cavity"},
    "T": {"0": "T0", "1": "T1", "2": "T2", "3": "T3", "4": "T4"},
}

# (min, max) are advisory input bounds only.
NUMERIC_FEATURES: Dict[str, tuple] = {
    "Age": (0.0, 120.0),
    "Smoking_Pack_per_Year": (0.0, 200.0),
    "Number_Teeth_before_Extraction": (0.0, 32.0),
    "RT_Dose": (0.0, 80.0),
    "D10cc": (0.0, 100.0),
}

FEATURE_DISPLAY_NAMES: Dict[str, str] = {
    "Insurance_Type": "Insurance Type",
    "Node": "Node Status",
    "Periodontal_Grading": "Periodontal Grading",
    "Disease_Site_Merged_2": "Tumor Site",
    "Age": "Age",
    "Smoking_Pack_per_Year": "Smoking Pack-Year",
    "T": "Tumor Status",
    "Number_Teeth_before_Extraction": "Number of Teeth Before Extraction",
    "RT_Dose": "RT Total Prescribed Dose",
    "D10cc": "D10cc (Gy)",
}

# Form defaults; only applied when a caller asks for them explicitly.
FEATURE_DEFAULTS: Dict[str, object] = {
    "Disease_Site_Merged_2": "2",
    "D10cc": 63.2,
    "Periodontal_Grading": "1",
    "Node": "2",
    "Number_Teeth_before_Extraction": 23,
    "Smoking_Pack_per_Year": 10,
    "Insurance_Type": "1",
    "T": "2",
    "Age": 60,
    "RT_Dose": 66,
}
