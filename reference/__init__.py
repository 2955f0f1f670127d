from .rest import (
    rereference,
    rest_operator,
    regularized_pinv,
    average_reference,
    average_reference_leadfield,
    resolve_alpha,
    PinvDiagnostics,
    REGULARIZATION,
    DEFAULT_ALPHA
)
from .recording import Recording
from .pipeline import reref_rest, cached_leadfield, clear_leadfield_cache

__all__ = [
    'rereference',
    'rest_operator',
    'regularized_pinv',
    'average_reference',
    'average_reference_leadfield',
    'resolve_alpha',
    'PinvDiagnostics',
    'REGULARIZATION',
    'DEFAULT_ALPHA',
    'Recording',
    'reref_rest',
    'cached_leadfield',
    'clear_leadfield_cache',
]
