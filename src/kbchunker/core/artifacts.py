from datetime import datetime, timezone
from pathlib import Path
import uuid
from .paths import logs


def new_job_id() -> str:
    return f"{datetime.now(timezone.utc).strftime('%Y-%m-%d_%H%M%S')}_{uuid.uuid4().hex[:4]}"


def job_log_dir(job_id: str) -> Path:
    p = logs() / job_id
    p.mkdir(parents=True, exist_ok=True)
    return p
