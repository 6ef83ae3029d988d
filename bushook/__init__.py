# Copyright (c) 2026 BusHook Contributors. All Rights Reserved.

"""
BusHook — run local commands for messages published on a Redis subject bus.

Each configured hook binds a subject to a command line or inline shell
script. Message payloads are fed to the command's stdin and, when the
sender expects one, the combined output is sent back as the reply.
"""

__version__ = "0.1.0"
