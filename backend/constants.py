"""
CropGenesis - Shared Constants
Closed vocabularies used by validators, models, prompts and statistics
"""

# =============================================================================
# Languages
# =============================================================================
LANGUAGES = {
    'en': 'English',
    'hi': 'Hindi',
    'te': 'Telugu',
    'ta': 'Tamil',
    'bn': 'Bengali',
    'mr': 'Marathi',
    'gu': 'Gujarati',
    'kn': 'Kannada',
    'ml': 'Malayalam',
    'or': 'Odia',
    'pa': 'Punjabi',
    'as': 'Assamese'
}

LANGUAGE_CODES = list(LANGUAGES.keys())
DEFAULT_LANGUAGE = 'en'

# =============================================================================
# Crop Plan Inputs
# =============================================================================
SOIL_TYPES = ['clay', 'sandy', 'loamy', 'silty', 'peaty', 'chalky', 'unknown']

IRRIGATION_METHODS = ['drip', 'sprinkler', 'flood', 'manual', 'rainfed', 'mixed']

SEASONS = [
    'kharif', 'rabi', 'zaid', 'spring', 'summer',
    'monsoon', 'autumn', 'winter', 'year-round'
]

LAND_SIZE_MIN = 0.1
LAND_SIZE_MAX = 1000

# =============================================================================
# Diagnosis Classification
# =============================================================================
SEVERITY_LEVELS = ['low', 'medium', 'high', 'critical']

AFFECTED_AREAS = ['leaves', 'stems', 'roots', 'fruits', 'flowers', 'whole-plant', 'unknown']

TREATMENT_TYPES = ['organic', 'chemical', 'biological', 'cultural', 'mixed']

# Fallbacks when a field cannot be found in the model output
DEFAULT_DISEASE_NAME = 'Unknown'
DEFAULT_SEVERITY = 'medium'
DEFAULT_AFFECTED_AREA = 'unknown'
DEFAULT_TREATMENT_TYPE = 'organic'

# =============================================================================
# Text Limits (characters)
# =============================================================================
MAX_DIAGNOSIS_CHARS = 15000
MAX_DISEASE_NAME_CHARS = 500
MAX_PLAN_QUESTION_CHARS = 500
MAX_DIAGNOSIS_QUESTION_CHARS = 1000
MAX_FOLLOW_UP_ANSWER_CHARS = 2000
MAX_NOTES_CHARS = 1000
MAX_TAGS = 10
MAX_TAG_CHARS = 50

PLAN_CONTINUATION_HINT = (
    '\n\nHave more questions about this plan? Use the "Ask Follow-up Questions" '
    'section below to get detailed answers about any specific aspect of your crop plan.'
)
TRUNCATION_SUFFIX = '...'

# =============================================================================
# Uploads
# =============================================================================
IMAGE_MIME_TYPES = {
    'image/jpeg': '.jpg',
    'image/jpg': '.jpg',
    'image/png': '.png'
}

VIDEO_MIME_TYPES = {
    'video/mp4': '.mp4',
    'video/avi': '.avi',
    'video/x-msvideo': '.avi',
    'video/mov': '.mov',
    'video/quicktime': '.mov'
}

# =============================================================================
# History
# =============================================================================
HISTORY_FILTERS = ['crop-plans', 'diagnoses']
HISTORY_ITEM_TYPES = ['crop-plan', 'diagnosis']
HISTORY_PREVIEW_CHARS = 200
