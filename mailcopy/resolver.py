"""Works out which source mailboxes are copied, and where to."""

import logging
from typing import Callable, Iterable, List, NamedTuple

from mailcopy.config import MigrationConfig

log = logging.getLogger(__name__)


class MailboxPair(NamedTuple):
    source: str
    destination: str


def resolve(config: MigrationConfig, discover: Callable[[], Iterable[str]]) -> List[MailboxPair]:
    """
    Build the ordered mailbox plan.

    An explicit ``include`` list replaces discovery entirely. Mapping
    entries only rename mailboxes that were already selected, and
    ``exclude`` is matched against source names. The result is sorted by
    source name so every run walks the mailboxes in the same order.
    """
    if config.include:
        candidates = set(config.include)
    else:
        candidates = set(discover())

    plan = {
        name: config.mapping.get(name, name)
        for name in candidates
        if name not in config.exclude
    }

    unused = set(config.mapping) - set(plan)
    if unused:
        log.debug(f"Ignoring mapping for unselected mailboxes: {', '.join(sorted(unused))}")

    return [MailboxPair(src, dst) for src, dst in sorted(plan.items())]
