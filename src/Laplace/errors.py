"""Exceptions raised before the iteration loop starts."""


class ConfigurationError(ValueError):
    """Process grid or buffer geometry is ill-formed."""


class AllocationError(MemoryError):
    """A grid or scratch buffer could not be allocated."""
