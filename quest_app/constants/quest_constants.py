"""Quest-related constants shared across the core and server layers."""

QUESTION_TIME_LIMIT_SECONDS: int = 20
FEEDBACK_DWELL_SECONDS: int = 5
TICK_INTERVAL_SECONDS: int = 1
OPTIONS_PER_QUESTION: int = 4
QUESTIONS_PER_QUEST: int = 10

PASS_SCORE: int = 70
MIN_QUEST_LEVEL: int = 0
MAX_QUEST_LEVEL: int = 5
BASE_EXP: int = 50
EXP_PER_LEVEL: int = 100

LEADERBOARD_DEFAULT_LIMIT: int = 100
