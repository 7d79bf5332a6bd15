"""
Navigation Resolver

Computes the next visible page (forward) or the previous visible page
(backward) from the page sequence, the visit history and the hidden
targets produced by the rule engine.

Both directions scan the sequence at most once, so navigation always
terminates in O(number of pages), whatever the rules hide.
"""

import logging
from typing import AbstractSet, List, Optional, Sequence

from funnel_logic.model import Block, Page

logger = logging.getLogger(__name__)

COMPLETE = "complete"


def is_page_hidden(page: Page, hidden_targets: AbstractSet[str]) -> bool:
    """A page is hidden by id, or when it has blocks and every one is hidden."""
    if page.id in hidden_targets:
        return True
    return bool(page.blocks) and all(block.id in hidden_targets for block in page.blocks)


def visible_blocks(page: Page, hidden_targets: AbstractSet[str]) -> List[Block]:
    return [block for block in page.blocks if block.id not in hidden_targets]


def _index_of(pages: Sequence[Page], page_id: Optional[str]) -> Optional[int]:
    for index, page in enumerate(pages):
        if page.id == page_id:
            return index
    return None


def next_page(
    pages: Sequence[Page],
    current_page_id: str,
    hidden_targets: AbstractSet[str],
    jump_to: Optional[str] = None,
) -> str:
    """
    Resolve the page that follows current_page_id.

    Args:
        pages: Pages in declared order
        current_page_id: Page just submitted; its own visibility is not checked
        hidden_targets: Hidden page and block ids
        jump_to: Optional jump target from the rule engine. The scan starts
            at the target instead of after the current page. A jump to the
            current page returns it as-is.

    Returns:
        The first non-hidden page id, or COMPLETE when none is left.
    """
    start = None
    if jump_to is not None:
        if jump_to == current_page_id:
            return current_page_id
        start = _index_of(pages, jump_to)
        if start is None:
            logger.warning("Jump target %s is not a page of this funnel, ignoring", jump_to)

    if start is None:
        current = _index_of(pages, current_page_id)
        if current is None:
            logger.warning("Current page %s is not a page of this funnel, scanning from the start", current_page_id)
            start = 0
        else:
            start = current + 1

    for index in range(start, len(pages)):
        page = pages[index]
        if page.id == current_page_id:
            continue
        if not is_page_hidden(page, hidden_targets):
            return page.id
    return COMPLETE


def previous_position(
    pages: Sequence[Page],
    visited_page_ids: Sequence[str],
    hidden_targets: AbstractSet[str],
) -> Optional[int]:
    """Index into visited_page_ids of the page to go back to, or None."""
    by_id = {page.id: page for page in pages}
    for position in range(len(visited_page_ids) - 1, -1, -1):
        page = by_id.get(visited_page_ids[position])
        if page is None:
            continue
        if is_page_hidden(page, hidden_targets):
            continue
        return position
    return None


def previous_page(
    pages: Sequence[Page],
    visited_page_ids: Sequence[str],
    hidden_targets: AbstractSet[str],
) -> Optional[str]:
    """
    Resolve the page to return to when the respondent goes back.

    Walks the visit history from the most recent entry, skipping pages
    that are unknown or have since become hidden.

    Returns:
        Page id, or None when the history is exhausted.
    """
    position = previous_position(pages, visited_page_ids, hidden_targets)
    if position is None:
        return None
    return visited_page_ids[position]
