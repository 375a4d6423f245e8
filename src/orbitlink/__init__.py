"""Scripted JPL Horizons telnet sessions and free-text field extraction."""
from __future__ import annotations

from . import bodies as _bodies
from . import errors as _errors
from . import extraction as _extraction
from . import orbit_conversion as _orbit_conversion
from . import pattern_buffer as _pattern_buffer
from . import planeworld_xml as _planeworld_xml
from . import session_config as _session_config
from . import session_script as _session_script
from . import telnet_codec as _telnet_codec

__version__ = "0.1.0"

__all__: list[str] = []
for _module in (
    _bodies,
    _errors,
    _extraction,
    _orbit_conversion,
    _pattern_buffer,
    _planeworld_xml,
    _session_config,
    _session_script,
    _telnet_codec,
):
    for _name in _module.__all__:
        if _name not in __all__:
            __all__.append(_name)
        globals()[_name] = getattr(_module, _name)
