"""
Incremental reads of the Talon log.

None of these functions raise: a missing, unreadable or rotated file reads
as "no new content" so polling loops can retry them unconditionally.
"""

import os
from pathlib import Path
from typing import Optional, Tuple, Union

from pilot_logging import get_logger

logger = get_logger("logtail")

PathLike = Union[str, Path]
FileIdentity = Tuple[int, int]


def size_of(path: PathLike) -> int:
    """Current size of the file in bytes, 0 if it cannot be read"""
    try:
        return os.path.getsize(path)
    except OSError:
        return 0


def file_identity(path: PathLike) -> Optional[FileIdentity]:
    """(st_dev, st_ino) of the file currently at path, None if absent"""
    try:
        st = os.stat(path)
    except OSError:
        return None
    return (st.st_dev, st.st_ino)


def read_from(path: PathLike, offset: int, identity: Optional[FileIdentity] = None) -> str:
    """Return the text appended to path since byte offset.

    When identity is given and path now names a different file (the log was
    rotated and recreated), the offset is meaningless and nothing is returned.
    """
    if offset < 0:
        return ""
    try:
        with open(path, 'rb') as f:
            if identity is not None:
                st = os.fstat(f.fileno())
                if (st.st_dev, st.st_ino) != identity:
                    return ""
            f.seek(0, os.SEEK_END)
            end = f.tell()
            # Shorter than the cursor: the file was truncated or rotated
            if end <= offset:
                return ""
            f.seek(offset)
            data = f.read()
    except OSError as e:
        logger.debug(f"Could not read {path} from {offset}: {e}")
        return ""
    return data.decode('utf-8', errors='replace')


def read_whole_file(path: PathLike) -> Optional[str]:
    """Whole file as text, or None when it does not exist or cannot be read"""
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return f.read()
    except OSError:
        return None
