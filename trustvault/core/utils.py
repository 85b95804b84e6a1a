import hashlib
import structlog
from pathlib import Path

from trustvault import config
from trustvault.core.errors import HashComputeError

logger = structlog.get_logger()


def calculate_bytes_hash(data: bytes, algorithm: str = None) -> str:
    """Calculate the 0x-prefixed content hash of raw bytes."""
    algorithm = algorithm or config.HASH_ALGORITHM
    try:
        hash_obj = hashlib.new(algorithm)
    except ValueError as e:
        logger.error("Failed to calculate content hash", algorithm=algorithm, error=str(e))
        raise HashComputeError(f"Digest algorithm unavailable: {algorithm}") from e

    hash_obj.update(data)
    return f"0x{hash_obj.hexdigest()}"


def truncate_hash(value: str, chars: int = 6) -> str:
    """Shorten a hash or address for display, keeping the 0x prefix."""
    if len(value) <= chars * 2 + 2:
        return value
    return f"{value[:chars + 2]}...{value[-chars:]}"


def ensure_dir_exists(dir_path: str) -> str:
    """Ensure directory exists, create if it doesn't."""
    try:
        Path(dir_path).mkdir(parents=True, exist_ok=True)
        return dir_path
    except Exception as e:
        logger.error("Failed to create directory", dir_path=dir_path, error=str(e))
        raise


def format_file_size(size_bytes: int) -> str:
    """Format file size in human-readable format."""
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while size_bytes >= 1024 and i < len(size_names) - 1:
        size_bytes /= 1024.0
        i += 1

    return f"{size_bytes:.1f} {size_names[i]}"
