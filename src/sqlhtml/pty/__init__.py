"""PTY process management — the interactive subprocesses being proxied.

Each subprocess runs in a managed pseudo-terminal with process group
isolation; its raw output is delivered chunk by chunk to an output
stage, and its stage is flushed when the process goes away.
"""

from sqlhtml.pty.session import PTYSession, PTYStatus
from sqlhtml.pty.manager import ProxiedProcess, PTYManager

__all__ = [
    "PTYSession",
    "PTYStatus",
    "PTYManager",
    "ProxiedProcess",
]
