"""Static metadata describing QuizQuest."""

APP_NAME = "QuizQuest"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "QuizQuest is a gamified learning service. Pick a topic, clear timed quests "
    "across six difficulty levels, earn EXP, keep your login streak alive and "
    "climb the leaderboard."
)
