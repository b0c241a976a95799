from .local import LocalStorage
from .paths import data_dir

__all__ = ["LocalStorage", "data_dir"]
