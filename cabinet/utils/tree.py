import logging
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

# Returns the parent id, None for a root; raises LookupError for a missing folder
ParentLookup = Callable[[str], Awaitable[Optional[str]]]


class CorruptTreeError(Exception):
    """Parent chain revisits a folder or runs past the depth budget"""
    pass


async def walk_ancestors(
    folder_id: str,
    get_parent_id: ParentLookup,
    max_depth: int,
    strict: bool = True,
) -> List[str]:
    """Return the ids from folder_id up to its root, folder_id first.

    The walk is bounded by max_depth and a visited set so a corrupted
    parent chain cannot loop forever. In strict mode a cycle or an
    over-deep chain raises CorruptTreeError and a dangling parent raises
    LookupError; otherwise the walk stops and returns what it collected.
    """
    chain: List[str] = []
    visited = set()
    current: Optional[str] = folder_id

    while current is not None:
        if current in visited or len(chain) >= max_depth:
            message = f"Corrupted parent chain above folder {folder_id} at {current}"
            if strict:
                raise CorruptTreeError(message)
            logger.warning(message)
            break

        visited.add(current)
        chain.append(current)
        try:
            current = await get_parent_id(current)
        except LookupError:
            # The starting folder itself missing is always an error
            if strict or len(chain) == 1:
                raise
            chain.pop()
            logger.warning(f"Dangling parent reference above folder {chain[-1]}: {current} does not exist")
            break

    return chain


async def is_within_subtree(
    folder_id: str,
    root_id: str,
    get_parent_id: ParentLookup,
    max_depth: int,
) -> Optional[List[str]]:
    """Walk up from folder_id until root_id is reached.

    Returns the ids from just below root_id down to folder_id (empty when
    folder_id is the root itself), or None when the walk hits a root, a
    missing folder, a cycle or the depth budget without meeting root_id.
    """
    path: List[str] = []
    visited = set()
    current: Optional[str] = folder_id

    while current is not None:
        if current == root_id:
            path.reverse()
            return path
        if current in visited or len(path) >= max_depth:
            logger.warning(f"Aborted containment walk from {folder_id}: corrupted parent chain at {current}")
            return None

        visited.add(current)
        path.append(current)
        try:
            current = await get_parent_id(current)
        except LookupError:
            return None

    return None
