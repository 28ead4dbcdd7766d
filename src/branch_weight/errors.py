from __future__ import annotations


class SourceUnavailableError(RuntimeError):
    """git cannot be invoked at all; no branch can be processed."""


class ResolutionError(RuntimeError):
    pass


class TraversalError(RuntimeError):
    pass


class ObjectLookupError(RuntimeError):
    pass


class CollectionCancelled(Exception):
    pass
