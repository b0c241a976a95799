from .autosave import AutosaveScheduler
from .session import EditorSession

__all__ = ["AutosaveScheduler", "EditorSession"]
