"""File helpers shared by the preparation stages."""

import contextlib
import os
import tempfile
from typing import IO, Iterator


@contextlib.contextmanager
def atomic_open(path: str) -> Iterator[IO[str]]:
    """Open ``path`` for writing so it only appears once fully written.

    Output goes to a temporary file in the same directory, which replaces
    ``path`` when the block exits normally. On error the temporary file is
    removed and ``path`` is left untouched.

    Args:
        path: Destination file

    Yields:
        Text file object opened for UTF-8 writing
    """
    directory = os.path.dirname(os.path.abspath(path))
    prefix = '.' + os.path.basename(path) + '.'
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=prefix, suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            yield f
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise
