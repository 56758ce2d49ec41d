import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

load_dotenv()

# YAML file with product constants
CONFIG_PATH = os.getenv("FRINGE_CONFIG", str(Path(__file__).with_name("config.yml")))
with open(CONFIG_PATH, "r", encoding="utf-8") as f:
    cfg = yaml.safe_load(f)

# Secrets and connections
TOKEN = os.getenv("TELEGRAM_TOKEN")
DB_PATH = os.getenv("DB_PATH", "sqlite+aiosqlite:///fringe.sqlite3")
STORAGE_ROOT = os.getenv("STORAGE_ROOT", "storage")
PUBLIC_URL = os.getenv("PUBLIC_URL", "http://localhost:8080").rstrip("/")
WEB_PORT = int(os.getenv("WEB_PORT", "8080"))

ADMINS = set(cfg.get("admin_ids", []))

# Profiles
DEFAULT_PROFILE_PIC = cfg["default_profile_pic"]
ROLES = ("student", "coach")
MIN_PASSWORD_LENGTH = 6

# Storage buckets
POST_IMAGES_BUCKET = "post-images"
PROFILES_BUCKET = "profiles"

# Feed / composer limits
MAX_IMAGES = 4
IMAGE_SIZE_LIMIT = 5 * 1024 * 1024          # 5 MiB
FEED_PAGE_SIZE = cfg.get("feed_page_size", 10)
LIVE_RELOAD_DELAY = cfg.get("live_reload_delay", 0.3)

# Swing videos
VIDEO_MAX_SIZE = 100 * 1024 * 1024          # 100 MB
VIDEO_MAX_DURATION = 60                     # seconds
UPLOAD_PROGRESS_STEP = 10
UPLOAD_PROGRESS_DELAY = cfg.get("upload_progress_delay", 0.2)

# Lessons (displayed, never charged)
LESSON_TYPES = cfg["lesson_types"]

# Daily swing thought broadcast
SWING_THOUGHT_CRON = cfg.get("swing_thought_cron", "0 7 * * *")
