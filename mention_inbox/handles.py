"""Pattern matching for @handle mentions in message bodies."""

import re
from typing import Iterator

HANDLE_PATTERN = re.compile(
    r"""
    (?:^|\W)                    # beginning of string or non-word char
    @((?>[a-z0-9][a-z0-9-]*))   # at-handle
    (?!/)                       # without a trailing slash
    (?=
      \.+[ \t\W]|               # dots followed by space or non-word character
      \.+$|                     # dots at end of line
      [^0-9a-zA-Z_.]|           # non-word character except dot
      $                         # end of line
    )
    """,
    re.IGNORECASE | re.VERBOSE | re.ASCII,
)


def find_handles(body: str | None) -> Iterator[str]:
    """
    Yield each distinct handle mentioned in a body of text.

    Handles are yielded as written (case preserved), once per distinct
    spelling. Comparison against stored handles is left to the caller.

    Examples:
        >>> list(find_handles("hey @bob, ask @Alice."))
        ['bob', 'Alice']
        >>> list(find_handles("see @bob/repo"))
        []
    """
    if not body:
        return

    seen: set[str] = set()
    for match in HANDLE_PATTERN.finditer(body):
        handle = match.group(1)
        if handle not in seen:
            seen.add(handle)
            yield handle


def normalize_handles(handles) -> list[str]:
    """Lower-case and de-duplicate handles, keeping first-seen order."""
    return list(dict.fromkeys(handle.lower() for handle in handles))
