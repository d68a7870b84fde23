import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env.local from project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env.local")

SERPAPI_KEY = os.getenv("SERPAPI_KEY", "")
SERPAPI_URL = os.getenv("SERPAPI_URL", "https://serpapi.com/search.json")

# Google locale the collection targets
SERPAPI_HL = os.getenv("SERPAPI_HL", "ru")
SERPAPI_GL = os.getenv("SERPAPI_GL", "ru")
SERPAPI_LOCATION = os.getenv("SERPAPI_LOCATION", "Russia")
SERPAPI_GOOGLE_DOMAIN = os.getenv("SERPAPI_GOOGLE_DOMAIN", "google.ru")

# Free SerpAPI plan allows 100 searches, so cap keywords per collect run
KEYWORDS_LIMIT = int(os.getenv("KEYWORDS_LIMIT", "15"))
RESULTS_PER_PAGE = 100

# Seconds to wait between keywords (uniformly random)
DELAY_RANGE = (1.0, 3.0)

RESULTS_DIR = Path(os.getenv("RESULTS_DIR", PROJECT_ROOT / "data" / "results"))
KEYWORDS_FILE = Path(os.getenv("KEYWORDS_FILE", PROJECT_ROOT / "data" / "keywords.json"))

# Used when the keyword file is missing or unreadable
DEFAULT_KEYWORDS = [
    "кредит для ИП",
    "кредитование малого бизнеса",
    "займ для ООО",
]
