"""photonterm -- Interactive remote execution client.

This package connects to a remote code runner over a Socket.IO event
channel, starts programs, answers their input requests, and keeps a
terminal-like transcript that merges remote output with locally echoed
input without showing anything twice.
"""

__version__ = "0.1.0"
