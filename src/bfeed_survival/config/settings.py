"""
Configuration settings for the breastfeeding survival analysis project.
"""

from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "output"
FIGURES_DIR = OUTPUT_DIR / "figures"
RESULTS_DIR = OUTPUT_DIR / "results"

# Data file paths
DATA_FILE = DATA_DIR / "bfeed.csv"
DATA_URL = "https://vincentarelbundock.github.io/Rdatasets/csv/KMsurv/bfeed.csv"

REPORT_FILENAME = "bfeed_survival_report.md"


# Analysis parameters
class AnalysisConfig:
    """Configuration parameters for analysis."""

    # Statistical significance level
    ALPHA = 0.05
    CONFIDENCE_LEVEL = 0.95

    # Weeks at which survival estimates are tabulated
    CHECKPOINT_WEEKS = [1, 4, 8, 12, 16, 20, 24, 32, 40, 48, 72, 96, 144, 192]

    # Proportional-hazards checks
    PH_TIME_TRANSFORM = 'km'
    PH_BORDERLINE_P = 0.10

    # Penalized regression splines for continuous covariates
    SPLINE_DF = 4
    SPLINE_DEGREE = 3
    SPLINE_PENALIZER = 0.5
    SPLINE_GRID_POINTS = 100
    SPLINE_PLOT_COVARIATES = ['agemth', 'yschool']

    # Stepwise selection stops when no move improves AIC by more than this
    AIC_TOLERANCE = 1e-6

    # Bins for stratified analysis of continuous covariates (right-open)
    AGE_BINS = [0, 20, 24, float('inf')]
    AGE_LABELS = ['<20', '20-23', '24+']
    BIRTH_COHORT_BINS = [0, 1981, 1984, float('inf')]
    BIRTH_COHORT_LABELS = ['1978-80', '1981-83', '1984-86']
    SCHOOL_BINS = [0, 12, 13, float('inf')]
    SCHOOL_LABELS = ['<12', '12', '>12']

    # Reference dataset size
    EXPECTED_RECORDS = 927
    EXPECTED_CENSORED = 35

    # Random seed for reproducibility
    RANDOM_SEED = 42


DURATION_COL = 'duration'
EVENT_COL = 'delta'

CATEGORICAL_COVARIATES = ['race', 'poverty', 'smoke', 'alcohol', 'pc3mth']
CONTINUOUS_COVARIATES = ['agemth', 'ybirth', 'yschool']
COVARIATES = ['race', 'poverty', 'smoke', 'alcohol', 'agemth', 'ybirth', 'yschool', 'pc3mth']
DERIVED_GROUPS = {
    'agemth': 'age_group',
    'ybirth': 'birth_cohort',
    'yschool': 'school_group',
}
REQUIRED_COLUMNS = [DURATION_COL, EVENT_COL] + COVARIATES

# Columns stratified by in survival curves and log-rank tests
GROUP_COLUMNS = CATEGORICAL_COVARIATES + list(DERIVED_GROUPS.values())

# Level order for categorical covariates; codes follow the KMsurv coding
CATEGORY_LEVELS = {
    'race': ['white', 'black', 'other'],
    'poverty': ['no', 'yes'],
    'smoke': ['no', 'yes'],
    'alcohol': ['no', 'yes'],
    'pc3mth': ['no', 'yes'],
}

CODE_MAPPING = {
    'race': {1: 'white', 2: 'black', 3: 'other'},
    'poverty': {0: 'no', 1: 'yes'},
    'smoke': {0: 'no', 1: 'yes'},
    'alcohol': {0: 'no', 1: 'yes'},
    'pc3mth': {0: 'no', 1: 'yes'},
}

# Column names mapping (alternative exports to canonical names)
COLUMN_MAPPING = {
    'time': 'duration',
    'status': 'delta',
    'event': 'delta',
    'age': 'agemth',
    'year_birth': 'ybirth',
    'years_school': 'yschool',
    'prenatal_care': 'pc3mth',
}

VARIABLE_DESCRIPTIONS = {
    'duration': 'Duration of breastfeeding (weeks)',
    'delta': 'Indicator of completed breastfeeding (1 = yes, 0 = censored)',
    'race': 'Race of mother (white, black, other)',
    'poverty': 'Mother in poverty',
    'smoke': 'Mother smoked at birth of child',
    'alcohol': 'Mother used alcohol at birth of child',
    'agemth': 'Age of mother at birth of child (years)',
    'ybirth': 'Year of birth',
    'yschool': 'Education level of mother (years of school)',
    'pc3mth': 'Prenatal care after 3rd month',
}

VARIABLE_LABELS = {
    'race': 'Race',
    'poverty': 'Poverty',
    'smoke': 'Smoking',
    'alcohol': 'Alcohol',
    'agemth': 'Mother age',
    'ybirth': 'Birth year',
    'yschool': 'Years of school',
    'pc3mth': 'Late prenatal care',
    'age_group': 'Mother age group',
    'birth_cohort': 'Birth cohort',
    'school_group': 'Schooling group',
}
