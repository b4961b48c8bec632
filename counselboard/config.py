"""Application configuration loaded from environment variables"""
import os

from dotenv import load_dotenv

load_dotenv()

# Database Configuration
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./counselboard.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Auto-complete sweep
AUTO_COMPLETE_ENABLED = os.getenv("AUTO_COMPLETE_ENABLED", "true").lower() in ("1", "true", "yes")
AUTO_COMPLETE_INTERVAL_SECONDS = int(os.getenv("AUTO_COMPLETE_INTERVAL_SECONDS", "60"))

# Inactivity policy (minutes since entry before a session is force-closed)
AUTO_COMPLETE_THRESHOLD_MINUTES = 60
EXTENDED_THRESHOLD_MINUTES = 75

AUTO_COMPLETE_BANNER = "[auto-completed] This session was closed automatically after exceeding its time limit."

# Analytics
UNSPECIFIED_CLASS_LABEL = "Unspecified"
TOPIC_ANALYSIS_LIMIT = 10
