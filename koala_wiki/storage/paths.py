from __future__ import annotations

from pathlib import Path
from typing import Optional

from koala_wiki import config


def data_dir(override: Optional[str] = None) -> Path:
    p = Path(override or config.data_dir()).expanduser()
    p.mkdir(parents=True, exist_ok=True)
    return p
