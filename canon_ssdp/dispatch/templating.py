"""
Command templating.

Turns a device's command line and an announcement's locations into the
argument vector handed to the process supervisor.
"""

import shlex
from typing import Optional, Sequence
from urllib.parse import urlsplit

DEFAULT_PLACEHOLDER = "$HOSTNAME"


def extract_host(locations: Sequence[str]) -> Optional[str]:
    """
    Return the host part of the first location URI.

    The host is returned as written, case included. IPv6 literals come back
    without brackets. None when there is no location or the first one has
    no usable network part.
    """
    if not locations or not isinstance(locations[0], str):
        return None
    try:
        parts = urlsplit(locations[0].strip())
        parts.port  # raises on a malformed port
    except (TypeError, ValueError):
        return None
    if not parts.scheme:
        return None

    # .hostname lowercases, so cut the host out of netloc ourselves
    hostport = parts.netloc.rpartition("@")[2]
    if hostport.startswith("["):
        host = hostport[1:].partition("]")[0]
    else:
        host = hostport.partition(":")[0]
    return host or None


def split_command(template: str) -> list[str]:
    """
    Tokenize a command line with shell quoting rules.

    Raises:
        ValueError: unbalanced quotes, trailing escape, or an empty command
    """
    if template is None:
        raise ValueError("command is missing")
    argv = shlex.split(template)
    if not argv:
        raise ValueError("command is empty")
    return argv


def replace_first(token: str, placeholder: str, value: str) -> tuple[str, bool]:
    """Replace the first placeholder in token; report whether one was found."""
    head, sep, tail = token.partition(placeholder)
    if not sep:
        return token, False
    return head + value + tail, True


def render_arguments(
    template: str,
    host: str,
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> list[str]:
    """
    Build argv from a command template and the discovered host.

    Only the first placeholder in the argument list is substituted;
    anything after it, in the same token or a later one, stays literal.
    Later tokens are not searched once a substitution has been made.
    """
    argv = split_command(template)
    for i, token in enumerate(argv):
        argv[i], replaced = replace_first(token, placeholder, host)
        if replaced:
            break
    return argv
