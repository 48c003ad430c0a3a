import logging
import random
from typing import AbstractSet, List, Optional

from wikihall.config import (
    DOOR_COUNT,
    LINK_FETCH_COUNT,
    MAX_CANDIDATES_TO_TEST,
    MAX_ROUNDS,
    MIN_IMAGE_REQUEST,
    WALL_COUNT,
)
from wikihall.errors import ContentSourceError, InsufficientContentError
from wikihall.models import DoorTarget
from wikihall.source import ContentSource
from wikihall.titles import normalize_title, title_key

logger = logging.getLogger(__name__)


class CandidateSelector:
    """
    Picks door destinations among the outbound links of an article. Links are
    tested online, one at a time, because many of them lead to articles with no
    usable imagery.
    """

    def __init__(self, source: ContentSource,
                 wall_count: int = WALL_COUNT,
                 max_rounds: int = MAX_ROUNDS,
                 fetch_count: int = LINK_FETCH_COUNT,
                 max_candidates_to_test: int = MAX_CANDIDATES_TO_TEST,
                 rng: Optional[random.Random] = None):
        self.source = source
        self.wall_count = wall_count
        self.max_rounds = max_rounds
        self.fetch_count = fetch_count
        self.max_candidates_to_test = max_candidates_to_test
        self.rng = rng or random.Random()

    @property
    def image_request_count(self) -> int:
        return max(MIN_IMAGE_REQUEST, self.wall_count)

    async def select_door_targets(self, base_title: str,
                                  visited: AbstractSet[str] = frozenset(),
                                  required: int = DOOR_COUNT) -> List[DoorTarget]:
        """
        Find `required` door targets linked from base_title, in order of acceptance.

        `visited` holds title keys (see titles.title_key) to steer away from. If the
        search budget runs out first, the result is padded with copies of the first
        accepted target, or with self-loops back to base_title when nothing qualified.
        """
        base_key = title_key(base_title)
        accepted: List[DoorTarget] = []
        tested_keys = set()
        tested = 0

        for round_index in range(self.max_rounds):
            if len(accepted) >= required:
                break

            try:
                links = await self.source.fetch_linked_titles(base_title, max(2, self.fetch_count))
            except ContentSourceError as e:
                logger.warning("Link fetch failed for '%s': %s", base_title, e)
                break

            if not links:
                logger.info("No outbound links for '%s'", base_title)
                break

            links = list(links)
            self.rng.shuffle(links)

            for raw in links:
                if len(accepted) >= required or tested >= self.max_candidates_to_test:
                    break

                candidate = normalize_title(raw)
                key = candidate.casefold()
                if not candidate or key == base_key or key in visited or key in tested_keys:
                    continue

                tested_keys.add(key)
                tested += 1

                try:
                    accepted.append(await self._test_candidate(candidate))
                except ContentSourceError as e:
                    logger.debug("Candidate '%s' fetch failed: %s", candidate, e)
                except InsufficientContentError as e:
                    logger.debug("Candidate rejected: %s", e)

            logger.debug("Round %d for '%s': %d accepted, %d tested",
                         round_index + 1, base_title, len(accepted), tested)

            if tested >= self.max_candidates_to_test:
                break

        return self._pad(base_title, accepted, required)

    async def _test_candidate(self, candidate: str) -> DoorTarget:
        urls = await self.source.fetch_image_urls(candidate, self.image_request_count)
        if urls is None or len(urls) < self.wall_count:
            raise InsufficientContentError(candidate, len(urls or []), self.wall_count)
        return DoorTarget(title=candidate, image_urls=list(urls))

    def _pad(self, base_title: str, accepted: List[DoorTarget], required: int) -> List[DoorTarget]:
        if len(accepted) >= required:
            return accepted[:required]

        if accepted:
            logger.warning("Only %d door target(s) for '%s'; duplicating '%s'",
                           len(accepted), base_title, accepted[0].title)
            template = accepted[0]
        else:
            logger.warning("No door targets for '%s'; doors loop back to it", base_title)
            template = DoorTarget(title=base_title, image_urls=[])

        padded = list(accepted)
        while len(padded) < required:
            padded.append(template.copy())
        return padded
