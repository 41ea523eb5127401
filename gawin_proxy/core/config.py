import os
from dotenv import load_dotenv

load_dotenv()

APP_VERSION = os.getenv("APP_VERSION", "2.4.0")

LOG_LEVEL_FROM_ENV = os.getenv("LOG_LEVEL", "INFO").upper()

API_TIMEOUT = int(os.getenv("API_TIMEOUT", "60"))
READ_TIMEOUT = float(os.getenv("READ_TIMEOUT", "30.0"))
MAX_CONNECTIONS = int(os.getenv("MAX_CONNECTIONS", "200"))

# ===== Providers =====
# Keys are read server side only and never echoed back to clients.
GROQ_API_KEY = os.getenv("GROQ_API_KEY", "")
GROQ_API_BASE_URL = os.getenv("GROQ_API_BASE_URL", "https://api.groq.com/openai/v1")
GROQ_TIMEOUT = float(os.getenv("GROQ_TIMEOUT", "15.0"))
GROQ_DEEPSEEK_MODEL = os.getenv("GROQ_DEEPSEEK_MODEL", "deepseek-r1-distill-llama-70b")

HUGGINGFACE_API_KEY = os.getenv("HUGGINGFACE_API_KEY", "")
HUGGINGFACE_API_BASE_URL = os.getenv("HUGGINGFACE_API_BASE_URL", "https://api-inference.huggingface.co/models")
HUGGINGFACE_TIMEOUT = float(os.getenv("HUGGINGFACE_TIMEOUT", "10.0"))

OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
OPENROUTER_API_BASE_URL = os.getenv("OPENROUTER_API_BASE_URL", "https://openrouter.ai/api/v1")
OPENROUTER_DEFAULT_MODEL = os.getenv("OPENROUTER_DEFAULT_MODEL", "deepseek/deepseek-chat")
OPENROUTER_TIMEOUT = float(os.getenv("OPENROUTER_TIMEOUT", "30.0"))
OPENROUTER_REFERER = os.getenv("OPENROUTER_REFERER", "https://gawin-ai.vercel.app")
OPENROUTER_TITLE = os.getenv("OPENROUTER_TITLE", "Gawin AI")

PERPLEXITY_API_KEY = os.getenv("PERPLEXITY_API_KEY", "")
PERPLEXITY_API_BASE_URL = os.getenv("PERPLEXITY_API_BASE_URL", "https://api.perplexity.ai")
PERPLEXITY_DEFAULT_MODEL = os.getenv("PERPLEXITY_DEFAULT_MODEL", "llama-3.1-sonar-large-128k-online")
PERPLEXITY_TIMEOUT = float(os.getenv("PERPLEXITY_TIMEOUT", "30.0"))

GOOGLE_AI_API_KEY = os.getenv("GOOGLE_AI_API_KEY", "")
GOOGLE_API_BASE_URL = os.getenv("GOOGLE_API_BASE_URL", "https://generativelanguage.googleapis.com")
GEMINI_DEFAULT_MODEL = os.getenv("GEMINI_DEFAULT_MODEL", "gemini-1.5-flash")
GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", "30.0"))

# Route name -> ordered adapter names. The order is the fallback priority.
CHAT_ROUTE_CHAINS = {
    "groq": ["groq", "huggingface", "groq-deepseek"],
    "deepseek": ["deepseek", "groq-deepseek"],
    "gemini": ["gemini", "groq"],
    "perplexity": ["perplexity", "groq"],
}
OCR_ANALYSIS_ROUTE = os.getenv("OCR_ANALYSIS_ROUTE", "groq")

# ===== Validation =====
MAX_INPUT_CHARS = int(os.getenv("MAX_INPUT_CHARS", "10000"))
MIN_MAX_TOKENS = 1
MAX_MAX_TOKENS = 8192

# ===== OCR =====
OCR_ALLOWED_MIME_TYPES = [
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "application/pdf",
]
OCR_MAX_FILES = int(os.getenv("OCR_MAX_FILES", "5"))
OCR_MAX_FILE_SIZE_MB = int(os.getenv("OCR_MAX_FILE_SIZE_MB", "10"))

# ===== Browser automation =====
BROWSER_SESSION_MAX_AGE_SECONDS = float(os.getenv("BROWSER_SESSION_MAX_AGE_SECONDS", "600"))
BROWSER_SESSION_SWEEP_INTERVAL_SECONDS = float(os.getenv("BROWSER_SESSION_SWEEP_INTERVAL_SECONDS", "300"))
BROWSER_NAVIGATION_TIMEOUT_MS = int(os.getenv("BROWSER_NAVIGATION_TIMEOUT_MS", "30000"))
BROWSER_USER_AGENT = os.getenv(
    "BROWSER_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 GawinAI/1.0"
)

# ===== Persistence / admin =====
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/gawin.db")
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")

COMMON_HEADERS = {"X-Accel-Buffering": "no"}
