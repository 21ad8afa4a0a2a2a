# Study notes utilities
from .exceptions import (
    NotesError,
    ValidationError,
    AuthenticationError,
    AccessDeniedError,
    NotFoundError,
    NotesLoadError,
    CheckoutError,
    GenerationError,
    StorageError,
    RequestCancelled,
    ChannelNotOwnedError
)

from .cancellation import CancelToken, run_step

from .model_config import (
    ModelConfig,
    MODEL_CONFIGS,
    DEFAULT_MODEL
)

__all__ = [
    'NotesError',
    'ValidationError',
    'AuthenticationError',
    'AccessDeniedError',
    'NotFoundError',
    'NotesLoadError',
    'CheckoutError',
    'GenerationError',
    'StorageError',
    'RequestCancelled',
    'ChannelNotOwnedError',
    'CancelToken',
    'run_step',
    'ModelConfig',
    'MODEL_CONFIGS',
    'DEFAULT_MODEL'
]
