from .lazy_resource import (
    LazyResource,
    with_resource
)
from .exceptions import (
    RestError,
    InputShapeError,
    MissingGeometryError,
    ModelInvariantError,
    NumericalInstabilityWarning,
    SyntheticDipoleWarning
)
from .geometry import project_to_sphere, fibonacci_sphere

__all__ = [
    'LazyResource',
    'with_resource',
    'RestError',
    'InputShapeError',
    'MissingGeometryError',
    'ModelInvariantError',
    'NumericalInstabilityWarning',
    'SyntheticDipoleWarning',
    'project_to_sphere',
    'fibonacci_sphere'
]
