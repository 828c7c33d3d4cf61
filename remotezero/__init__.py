"""
remotezero: remote-backed models with transparent proxies for every data operation.
"""

from remotezero.core import *  # noqa: F401,F403
from remotezero.core import __all__

__version__ = "0.1.0"
