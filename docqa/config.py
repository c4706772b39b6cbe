"""
Runtime configuration.
Values come from the environment (or a local .env file in development).
"""
import os

from dotenv import load_dotenv

load_dotenv()  # loads .env in local dev; no effect in Docker if env vars provided


def _bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL", "postgresql+psycopg://postgres:postgres@db:5432/docqa"
)
DB_ECHO = _bool("DB_ECHO")

# Embeddings
EMBED_MODEL = os.getenv("EMBED_MODEL", "multi-qa-MiniLM-L6-cos-v1")
EMBED_DIM = int(os.getenv("EMBED_DIM", "384"))

# Ollama generation backend
OLLAMA_URL = os.getenv("OLLAMA_URL", "http://ollama:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3:8b")
OLLAMA_DEFAULT_MODELS = [
    m.strip() for m in os.getenv("OLLAMA_DEFAULT_MODELS", OLLAMA_MODEL).split(",") if m.strip()
]
OLLAMA_CONNECT_TIMEOUT = float(os.getenv("OLLAMA_CONNECT_TIMEOUT", "5"))
OLLAMA_READ_TIMEOUT = float(os.getenv("OLLAMA_READ_TIMEOUT", "60"))
LLM_NUM_CTX = int(os.getenv("LLM_NUM_CTX", "4096"))
LLM_NUM_BATCH = int(os.getenv("LLM_NUM_BATCH", "256"))
LLM_NUM_THREAD = int(os.getenv("LLM_NUM_THREAD", "0"))  # 0 = number of CPUs
LLM_NUM_PREDICT_SHORT = int(os.getenv("LLM_NUM_PREDICT_SHORT", "180"))
LLM_NUM_PREDICT_NORMAL = int(os.getenv("LLM_NUM_PREDICT_NORMAL", "400"))
LLM_NUM_PREDICT_DETAILED = int(os.getenv("LLM_NUM_PREDICT_DETAILED", "800"))
LLM_STOP_SEQUENCES_ENABLED = _bool("LLM_STOP_SEQUENCES_ENABLED")

# OpenAI (optional second provider)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# Default generation provider: "ollama" or "openai"
DEFAULT_PROVIDER = os.getenv("DEFAULT_PROVIDER", "ollama")

# Retrieval
RETRIEVAL_MAX_DISTANCE = float(os.getenv("RETRIEVAL_MAX_DISTANCE", "0.75"))
RETRIEVAL_SEMANTIC_WEIGHT = float(os.getenv("RETRIEVAL_SEMANTIC_WEIGHT", "0.7"))
RETRIEVAL_KEYWORD_WEIGHT = float(os.getenv("RETRIEVAL_KEYWORD_WEIGHT", "0.3"))
MAX_CONTEXT_CHARS = int(os.getenv("MAX_CONTEXT_CHARS", "4500"))

# Upload limits
DEFAULT_CHUNK_SIZE = int(os.getenv("DEFAULT_CHUNK_SIZE", "500"))
MAX_FILE_SIZE_BYTES = int(os.getenv("MAX_FILE_SIZE_BYTES", str(10 * 1024 * 1024)))

# Startup
RUN_STARTUP_TASKS = _bool("RUN_STARTUP_TASKS", "true")
WEB_DIR = os.getenv("WEB_DIR", "web")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = _bool("LOG_JSON")
