"""
Stamping sessions: discover annotations in a part and run them in document order.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Literal, Mapping, Optional, Set, Union
import xml.etree.ElementTree as ET

from stamp.stamp_config import StamperConfiguration, standard_configuration
from stamp.stamp_context import ContextRoot, EvaluationContextFactory
from stamp.stamp_datatypes import Comment, ProcessingError
from stamp.stamp_document import DocxPart, unwrap_tags
from stamp.stamp_engine import CommentHook, EngineFactory
from stamp.stamp_invokers import Invokers
from stamp.stamp_logging import configure_logging

logger = logging.getLogger(__name__)


@dataclass
class StampResult:
    """The structured result of stamping one part."""
    status: Literal['success', 'error']
    processed: int = 0
    errors: List[str] = field(default_factory=list)

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        return "\n".join(self.errors) or "Unknown error"


class StampSession:
    """Owns everything needed to stamp one document.

    The invokers are built once here and only read afterwards. The
    context root, hooks and counters belong to this session alone.
    """

    def __init__(self, root_object: Any, comments: Union[Iterable[Comment], Mapping[str, str]],
                 configuration: Optional[StamperConfiguration] = None,
                 variables: Optional[Mapping[str, Any]] = None):
        self.configuration = configuration or standard_configuration()
        if self.configuration.log_level:
            configure_logging(self.configuration.log_level)
        if isinstance(comments, Mapping):
            comments = [Comment(str(k), v) for k, v in comments.items()]
        self.comments = {c.id: c for c in comments}
        self.context_root = ContextRoot(root_object, variables)
        self.invokers = Invokers(self.configuration.stream_invokers())
        self.engine_factory = EngineFactory()
        self.evaluation_context_factory = EvaluationContextFactory(
            self.invokers, self.configuration.comment_processors, self)
        self.processed = 0
        self.errors: List[str] = []
        self._unknown_comments: Set[str] = set()

    def hooks(self, part: DocxPart, within: Optional[ET.Element] = None) -> Iterator[CommentHook]:
        """Yields one hook per annotated tag, in document order."""
        for tag in part.stream_tags(within):
            comment = self.comments.get(tag.comment_id)
            if comment is None:
                if tag.comment_id not in self._unknown_comments:
                    self._unknown_comments.add(tag.comment_id)
                    logger.warning("No comment %r for tag in %r", tag.comment_id, part)
                continue
            yield CommentHook(part, tag, comment)

    def _next_pending(self, part, within) -> Optional[CommentHook]:
        return next((h for h in self.hooks(part, within) if not h.executed), None)

    def process(self, part: DocxPart, within: Optional[ET.Element] = None) -> int:
        """Runs pending annotations until none is left. Re-entrant."""
        count = 0
        # Re-scan each time: a hook may clone or drop content.
        while (hook := self._next_pending(part, within)) is not None:
            if self.run_hook(hook):
                count += 1
        return count

    def run_hook(self, hook: CommentHook) -> bool:
        try:
            processed = hook.run(self.engine_factory, self.context_root, self.evaluation_context_factory)
        except ProcessingError as e:
            if self.configuration.on_error == 'abort':
                raise
            logger.warning("Skipping annotation %s: %s", hook.comment.id, e)
            self.errors.append(str(e))
            return False
        if processed:
            self.processed += 1
        return processed

    def stamp(self, part: DocxPart) -> StampResult:
        """The main entry point to stamp a part."""
        self.processed = 0
        self.errors = []
        try:
            self.process(part)
        except ProcessingError as e:
            logger.error("Stamping %r aborted: %s", part, e)
            self.errors.append(str(e))
            return StampResult(status='error', processed=self.processed, errors=list(self.errors))
        if self.configuration.remove_tags:
            unwrap_tags(part)
        logger.info("Stamped %r: %d annotations processed, %d failed", part, self.processed, len(self.errors))
        return StampResult(
            status='error' if self.errors else 'success',
            processed=self.processed,
            errors=list(self.errors),
        )
