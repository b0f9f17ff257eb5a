"""Notice banner pipeline.

This module exposes the pipeline together with the data models and storage
tiers so that a hosting shell can import them from ``notice_banner``.
"""

from .core.models import LanguagePolicy, NoticeRecord
from .core.storage import JSONStorage, SessionStorage
from .data.store import DismissalStore
from .pipeline import NoticePipeline

__all__ = [
    "LanguagePolicy",
    "NoticeRecord",
    "JSONStorage",
    "SessionStorage",
    "DismissalStore",
    "NoticePipeline",
]
