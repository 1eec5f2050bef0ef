"""
Class decorators that mark entities for service discovery.

The decorators only stamp metadata on the class; a container builder reads it
back with discovery_metadata(). The checker never imports user code, it
recognises these decorators statically by name.
"""

from typing import Any, Callable, Dict, Optional, TypeVar

T = TypeVar("T", bound=type)

METADATA_ATTRIBUTE = "__discovery__"

WATCHED_MARKERS = (
    "service",
    "as_service",
    "as_event_listener",
    "excluded",
    "autowire",
    "no_autowire",
    "enable_inject",
)


def _stamp(cls: T, key: str, value: Any) -> T:
    # Copy so subclasses don't mutate the parent's dict
    metadata = dict(cls.__dict__.get(METADATA_ATTRIBUTE, {}))
    metadata[key] = value
    setattr(cls, METADATA_ATTRIBUTE, metadata)
    return cls


def service(lazy: bool = True) -> Callable[[T], T]:
    """Mark a class as a container service."""
    def decorator(cls: T) -> T:
        return _stamp(cls, "service", {"lazy": lazy})
    return decorator


def as_service(name: Optional[str] = None) -> Callable[[T], T]:
    """
    Register a class as a service, optionally under an explicit name.

    Raises:
        ValueError: If name is an empty string
    """
    if name == "":
        raise ValueError("Empty string is not valid service name.")

    def decorator(cls: T) -> T:
        return _stamp(cls, "as_service", {"name": name})
    return decorator


def as_event_listener(cls: T) -> T:
    """Register a class as an event listener."""
    return _stamp(cls, "as_event_listener", True)


def excluded(cls: T) -> T:
    """Exclude a class from discovery."""
    return _stamp(cls, "excluded", True)


def autowire(enabled: bool = True) -> Callable[[T], T]:
    def decorator(cls: T) -> T:
        return _stamp(cls, "autowire", enabled)
    return decorator


def no_autowire(cls: T) -> T:
    return _stamp(cls, "autowire", False)


def enable_inject(cls: T) -> T:
    """Enable property injection for the class and its subclasses."""
    return _stamp(cls, "enable_inject", True)


def discovery_metadata(cls: type) -> Dict[str, Any]:
    """
    Return the discovery metadata declared on a class.

    Only enable_inject is inherited from base classes; every other marker
    applies to the decorated class alone.
    """
    metadata: Dict[str, Any] = dict(cls.__dict__.get(METADATA_ATTRIBUTE, {}))
    if "enable_inject" not in metadata:
        for base in cls.__mro__[1:]:
            if base.__dict__.get(METADATA_ATTRIBUTE, {}).get("enable_inject"):
                metadata["enable_inject"] = True
                break
    return metadata
