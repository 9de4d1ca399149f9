"""Package-wide constants.

Thresholds and magic numbers shared by the context aggregator, the weight
selection logic and the normalization engine. Values that need to change per
deployment belong in config.py instead.
"""

# ===================
# Scoring
# ===================

# Category weights always total this many points
TOTAL_CATEGORY_POINTS = 100

# Placeholder score for AI output carrying neither an overall score nor
# category scores. Always paired with metadata["ungraded"] = True.
UNGRADED_DEFAULT_SCORE = 70

# Points added to a category the user persistently struggles with,
# before the weights are rescaled back to TOTAL_CATEGORY_POINTS
WEAKNESS_WEIGHT_BONUS = 5

# Scores at or below this are read as a 0-10 scale and multiplied by 10
TEN_POINT_SCALE_MAX = 10

# Performance bands, highest first: (minimum score, label)
PERFORMANCE_LEVELS: tuple[tuple[int, str], ...] = (
    (95, "exceptional"),
    (85, "excellent"),
    (75, "very good"),
    (65, "good"),
    (55, "satisfactory"),
    (45, "average"),
    (35, "needs improvement"),
    (25, "below average"),
)
LOWEST_PERFORMANCE_LEVEL = "poor"
UNRATED_PERFORMANCE_LEVEL = "not rated"

# Per-evaluation category highlights (trait detection across evaluations
# uses the User Context thresholds below)
CATEGORY_STRENGTH_THRESHOLD = 80
CATEGORY_WEAKNESS_THRESHOLD = 50


# ===================
# User Context
# ===================

# A category score at or above this marks a strong showing
STRENGTH_SCORE_THRESHOLD = 80

# A category score at or below this marks a weak showing
WEAKNESS_SCORE_THRESHOLD = 60

# How many qualifying evaluations make a strength/weakness persistent
TRAIT_MIN_OCCURRENCES = 2

# Default history windows
DEFAULT_CHALLENGE_HISTORY_LIMIT = 10
DEFAULT_EVALUATION_HISTORY_LIMIT = 5

CONTEXT_VERSION = "2.0"


# ===================
# Conversation State
# ===================

CONVERSATION_STATE_TTL_SECONDS = 3600  # 1 hour

# Distributed lock settings
DISTRIBUTED_LOCK_TTL_SECONDS = 30
DISTRIBUTED_LOCK_RETRY_DELAY_SECONDS = 0.1
DISTRIBUTED_LOCK_MAX_RETRIES = 50

# Purpose prefix for evaluation threads
EVALUATION_PURPOSE_PREFIX = "evaluation"


# ===================
# Prompt Construction
# ===================

# Interaction samples shown in personality prompts
MAX_INTERACTION_SAMPLES = 5
INTERACTION_PREVIEW_CHARS = 100

DEFAULT_FOCUS_AREA_COUNT = 3
DEFAULT_CREATIVE_VARIATION = 0.7
