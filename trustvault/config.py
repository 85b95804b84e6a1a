import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# Similarity matching
SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", 0.75))
SHORT_TEXT_LENGTH = int(os.getenv("SHORT_TEXT_LENGTH", 100))

# Text extraction
MAX_TEXT_CHARS = int(os.getenv("MAX_TEXT_CHARS", 5000))

# Embedding model
EMBEDDING_MODEL_NAME = os.getenv("EMBEDDING_MODEL_NAME", "sentence-transformers/all-MiniLM-L6-v2")
EMBEDDING_DIMENSION = int(os.getenv("EMBEDDING_DIMENSION", 384))
EMBEDDING_DEVICES = [d.strip() for d in os.getenv("EMBEDDING_DEVICES", "cuda,mps,cpu").split(",") if d.strip()]
EMBEDDING_MAX_TOKENS = int(os.getenv("EMBEDDING_MAX_TOKENS", 256))

# Local vector store
VECTOR_STORE_DIR = os.getenv("VECTOR_STORE_DIR", "./data")
VECTOR_STORE_KEY = os.getenv("VECTOR_STORE_KEY", "trustvault_vectors")

# Block registration when the AI fingerprint step fails
REQUIRE_PLAGIARISM_CHECK = _env_bool("REQUIRE_PLAGIARISM_CHECK", "false")

# Uploads
MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", 10 * 1024 * 1024))  # 10MB default
HASH_ALGORITHM = os.getenv("HASH_ALGORITHM", "sha256")

# Server
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", 8000))
DEBUG = _env_bool("DEBUG", "false")
