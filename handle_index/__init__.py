from .mapping import KeyCounts, Mapping
from .store import MergeStore
from .extract import Batch, UserInfo, extract_user_info
from .errors import (CorruptKeyError, CorruptStoreError, CorruptValueError,
                     HandleIndexError, HandleTooLongError, IdOutOfRangeError,
                     RecordDecodeError)
__all__ = ["Mapping", "KeyCounts", "MergeStore", "Batch", "UserInfo",
           "extract_user_info", "HandleIndexError", "HandleTooLongError",
           "CorruptStoreError", "CorruptKeyError", "CorruptValueError",
           "IdOutOfRangeError", "RecordDecodeError"]
