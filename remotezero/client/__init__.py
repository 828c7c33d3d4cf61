from remotezero.client.http import HttpInvoker
from remotezero.client.testing import InvocationRecord, LocalInvoker

__all__ = ["HttpInvoker", "LocalInvoker", "InvocationRecord"]
