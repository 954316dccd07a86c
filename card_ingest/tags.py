"""Review tag bootstrap."""

import structlog

from .collaborators import TagStore
from .config import REVIEW_TAG_DESCRIPTION, REVIEW_TAG_NAME
from .errors import TagCreationError
from .models import Tag
from .retry import RetryPolicy

log = structlog.get_logger()


class TagEnsurer:
    """Makes sure the well-known review tag exists and returns its id."""

    def __init__(
        self,
        tags: TagStore,
        retry_policy: RetryPolicy,
        name: str = REVIEW_TAG_NAME,
        description: str = REVIEW_TAG_DESCRIPTION,
    ):
        self.tags = tags
        self.retry_policy = retry_policy
        self.name = name
        self.description = description

    async def ensure(self) -> str:
        try:
            existing = await self.retry_policy.call_checked(self.tags.list, what="list tags")
            for item in existing or []:
                tag = item if isinstance(item, Tag) else Tag.model_validate(item)
                if tag.name and tag.name.lower() == self.name.lower():
                    return tag.id

            created = await self.retry_policy.call_checked(
                self.tags.create, self.name, self.description, what="create tag"
            )
        except Exception as e:
            raise TagCreationError(f"Failed to create {self.name!r} tag: {e}") from e

        if created is None:
            raise TagCreationError(f"Failed to create {self.name!r} tag: empty reply")
        log.info("Review tag created", tag=self.name, tag_id=created.id)
        return created.id
