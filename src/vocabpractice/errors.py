"""Errors raised by the practice engine."""
from typing import Any, List, Optional


class PracticeError(Exception):
    """Base class for practice engine errors."""


class EmptyVocabularyPool(PracticeError):
    """The vocabulary source returned no words for the requested filters."""


class SessionAlreadyActive(PracticeError):
    """A session was initialized while an unfinished one is still in memory."""


class InvalidPracticeConfig(PracticeError, ValueError):
    """The practice configuration is out of range."""


class SessionNotComplete(PracticeError):
    """A session was finalized before its last word was answered."""


class PersistenceWriteFailure(PracticeError):
    """The local progress store could not be written."""


class FinalizeWriteFailure(PracticeError):
    """The finalized session could not be written to history."""


class FinalizeInProgress(PracticeError):
    """Finalize was called while another finalize is still running."""


class MasteryUpdateFailure(PracticeError):
    """One or more vocabulary statistics could not be updated after a finalize."""

    def __init__(self, vocabulary_ids: List[Any], record: Optional[Any] = None):
        super().__init__(f"Failed to update vocabulary stats for {vocabulary_ids}")
        self.vocabulary_ids = vocabulary_ids
        self.record = record
