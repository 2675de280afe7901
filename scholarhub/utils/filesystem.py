import secrets
import time
from pathlib import Path
from scholarhub.config import settings


def ensure_data_dirs(data_path: Path | None = None) -> Path:
    path = data_path or settings.data_path
    path.mkdir(parents=True, exist_ok=True)
    (path / "uploads").mkdir(exist_ok=True)
    (path / "storage").mkdir(exist_ok=True)
    return path


def sanitize_filename(name: str) -> str:
    keep = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789._-")
    return "".join(c if c in keep else "_" for c in name)


def epoch_millis() -> int:
    return int(time.time() * 1000)


def staged_filename(original_name: str, field: str = "document") -> str:
    """Collision-resistant name for a file staged on local disk before upload."""
    suffix = Path(original_name or "").suffix.lower()
    return f"{field}-{epoch_millis()}-{secrets.randbelow(10**9)}{sanitize_filename(suffix)}"


def object_key(filename: str, prefix: str = "documents") -> str:
    return f"{prefix}/{epoch_millis()}-{sanitize_filename(filename)}"
