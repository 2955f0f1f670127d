import threading
from functools import wraps
from typing import Optional, Callable, Any


class LazyResource():
    """
    Wraps a loader function to do lazy, load-once initialisation.

    The resource is only loaded when first requested, avoiding file reads
    during module import. Loading is guarded by a lock so that concurrent
    first use still loads a single instance; afterwards the same object is
    handed out to every caller and must be treated as read-only.

    Parameters
    ----------
    loader : callable
        Zero-argument function producing the resource.
    name : str, optional
        Human-readable name used in messages.

    Examples
    --------
    >>> table = LazyResource(lambda: np.loadtxt('dipoles.dat'), name='dipoles')
    >>> # Nothing loaded yet
    >>> pos = table.get()   # file is read here
    >>> table.get() is pos  # subsequent calls reuse the same instance
    True
    >>> table.release()     # explicit teardown; the next get() reloads
    """

    def __init__(self, loader : Callable[[], Any], name : Optional[str] = None):
        self.loader = loader
        self.name = name or getattr(loader, '__name__', 'resource')
        self._value = None
        self.is_loaded = False
        self._lock = threading.Lock()

    def get(self, verbose : bool = False):
        """Return the resource, loading it on first access."""
        if self.is_loaded:
            return self._value
        with self._lock:
            if not self.is_loaded:
                if verbose:
                    print(f"Loading {self.name}", end="...", flush=True)
                self._value = self.loader()
                self.is_loaded = True
                if verbose:
                    print("done.")
        return self._value

    def release(self):
        """Drop the loaded resource; the next ``get()`` loads it again."""
        with self._lock:
            self._value = None
            self.is_loaded = False

    def __repr__(self) -> str:
        state = 'loaded' if self.is_loaded else 'not loaded'
        return f"LazyResource(name='{self.name}', {state})"


def with_resource(resource : LazyResource, kwarg : str):
    """
    Decorator that injects a lazily loaded resource into functions.

    The resource is only loaded if the caller did not pass the keyword
    argument explicitly (or passed ``None``). Declare the argument
    keyword-only in the decorated signature; a positional value is not seen.

    Parameters
    ----------
    resource : LazyResource
        The shared resource to inject
    kwarg : str
        Name of the keyword argument receiving the resource

    Returns
    -------
    decorator : callable
        Decorator function

    Examples
    --------
    >>> @with_resource(_default_dipoles, 'dipoles')
    >>> def my_function(x, *, dipoles=None):
    >>>     return dipoles.n_dipoles * x
    >>>
    >>> # 'dipoles' is automatically provided
    >>> result = my_function(2)
    """
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            if kwargs.get(kwarg) is None:
                kwargs[kwarg] = resource.get(verbose=kwargs.get('verbose', False))
            return f(*args, **kwargs)
        return wrapper
    return decorator
