"""
Configuration constants for device identification.

All scoring thresholds and confidence values centralised in one place.
"""

# ============================================================================
# Pattern-shape classification
# ============================================================================
TURN_ON_MIN_DELTA = 50              # watts, delta above this is a turn-on
TURN_OFF_MAX_DELTA = -50            # watts, delta below this is a turn-off
STABLE_MAX_DELTA = 20               # watts, |delta| below this may be stabilization
STABLE_MIN_POWER = 100              # watts, ... if the phase is drawing more than this

# ============================================================================
# Pattern-shape scoring
# ============================================================================
SWITCH_RANGE_LOW_FACTOR = 0.7       # × average_power
SWITCH_RANGE_HIGH_FACTOR = 1.2      # × peak_power
SWITCH_WIDE_LOW_FACTOR = 0.5        # × lower bound of the range above
SWITCH_WIDE_HIGH_FACTOR = 1.5       # × upper bound of the range above
SWITCH_MATCH_CONFIDENCE = 0.8
SWITCH_WIDE_CONFIDENCE = 0.5

STABLE_RANGE_LOW_FACTOR = 0.8       # × average_power
STABLE_RANGE_HIGH_FACTOR = 1.2      # × average_power
STABLE_WIDE_LOW_FACTOR = 0.6
STABLE_WIDE_HIGH_FACTOR = 1.4
STABLE_MATCH_CONFIDENCE = 0.6
STABLE_WIDE_CONFIDENCE = 0.3

PATTERN_MIN_CONFIDENCE = 0.3        # keep only scores strictly above

# ============================================================================
# Local algorithm
# ============================================================================
POWER_RATIO_STRONG = 0.8
POWER_RATIO_PARTIAL = 0.6
POWER_RATIO_STRONG_SCORE = 0.4
POWER_RATIO_PARTIAL_SCORE = 0.2

REFERENCE_TOLERANCE = 0.3           # 30% of the expected wattage
REFERENCE_CLOSE_SCORE = 0.4         # within tolerance × 0.5 (15%)
REFERENCE_TOLERANCE_SCORE = 0.2     # within tolerance (30%)
REFERENCE_WEAK_SCORE = 0.1          # within tolerance × 2 (60%)

TYPE_RANGE_SCORE = 0.3
TYPE_EXTENDED_SCORE = 0.1
TYPE_EXTENDED_LOW_FACTOR = 0.7
TYPE_EXTENDED_HIGH_FACTOR = 1.3

WORK_HOURS_SCORE = 0.1
MEAL_TIME_SCORE = 0.15
MEAL_TIME_TOLERANCE_HOURS = 1
EVENING_HOURS_SCORE = 0.1

CORRELATION_WINDOW_MS = 5000        # complementary event lookback
CORRELATION_SCORE = 0.2

LOCAL_MIN_CONFIDENCE = 0.1          # keep only sums strictly above
MAX_CONFIDENCE = 1.0

# ============================================================================
# Historical pattern matching
# ============================================================================
HISTORY_POWER_TOLERANCE = 50        # watts
HISTORY_BASE_CONFIDENCE = 0.5
HISTORY_STEP_CONFIDENCE = 0.1
HISTORY_MAX_CONFIDENCE = 0.9

# ============================================================================
# Consolidation
# ============================================================================
MAX_SUGGESTIONS = 5

# ============================================================================
# AI hook
# ============================================================================
AI_MIN_TRAINING_RECORDS = 50

ALGORITHM_PATTERN_ENHANCED = 'pattern_enhanced'
ALGORITHM_LOCAL = 'local'
ALGORITHM_PATTERN = 'pattern'
ALGORITHM_AI = 'ai'
