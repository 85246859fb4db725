"""Process-wide registry of extensions and of the identifiers every root environment starts with.

The registry is filled once (see grol.runtime.extensions.init) and read through extra_functions(), which returns a
read-only view that the evaluator keeps.
"""

import logging
import types

from grol.lang.error import GenericException
from grol.runtime.object import NULL, Extension

logger = logging.getLogger(__name__)

_extensions = {}
_identifiers = {"nil": NULL, "null": NULL}


def create_function(ext):
    """Registers ext. Registering a name twice is an error."""
    if not isinstance(ext, Extension):
        raise GenericException("can only register extensions, got '{}'", repr(ext), diagnosis=False)
    if ext.name in _extensions:
        raise GenericException("extension '{}' already registered", ext.name, diagnosis=False)
    if ext.max_args != -1 and ext.max_args < ext.min_args:
        raise GenericException("extension '{}' has max_args < min_args", ext.name, diagnosis=False)
    logger.debug("registering extension %s", ext.usage())
    _extensions[ext.name] = ext


def add_identifier(name, value):
    """Adds a binding that every new root environment starts with."""
    _identifiers[name] = value


def extra_functions():
    return types.MappingProxyType(_extensions)


def initial_identifiers():
    return types.MappingProxyType(_identifiers)


def is_registered(name):
    return name in _extensions
