"""
Built-in comment processors.

Each processor is declared as an interface (the functions an expression
may call) and an implementation bound to one annotation. The session
instantiates implementations per annotation, so `repeat`, `display_if`
and `replace_with` always act on the tag that carries the expression.
"""

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from stamp.stamp_datatypes import ProcessorContext
from stamp.stamp_document import new_run

logger = logging.getLogger(__name__)


class RepeatCommands(ABC):
    @abstractmethod
    def repeat(self, items: Iterable) -> None:
        """Repeats the tag content once per item."""


class ConditionalCommands(ABC):
    @abstractmethod
    def display_if(self, condition: Any) -> None:
        """Drops the tag content unless condition is truthy."""


class ReplaceCommands(ABC):
    @abstractmethod
    def replace_with(self, value: Any) -> None:
        """Replaces the tag content with the text of value."""


class RepeatProcessor(RepeatCommands):
    """Clones the annotated content per item and stamps each clone right away.

    Every clone gets its own branch of the context root, so annotations
    nested inside see the current item first. Nested repeats recurse
    through the session; depth follows the document's nesting depth.
    """
    def __init__(self, context: ProcessorContext, session):
        self.context = context
        self.session = session

    def repeat(self, items):
        tag = self.context.tag
        template = tag.clear_content()
        if items is None:
            return
        for item in items:
            key = self.session.context_root.branch(self.context.context_key, item)
            for child in template:
                clone = copy.deepcopy(child)
                tag.element.append(clone)
                for hook in self.session.hooks(self.context.part, within=clone):
                    hook.set_context_key(key)
                self.session.process(self.context.part, within=clone)


class ConditionalProcessor(ConditionalCommands):
    def __init__(self, context: ProcessorContext, session):
        self.context = context

    def display_if(self, condition):
        if not condition:
            removed = self.context.tag.clear_content()
            logger.debug("Removed %d elements under annotation %s", len(removed), self.context.comment.id)


class ReplaceProcessor(ReplaceCommands):
    def __init__(self, context: ProcessorContext, session):
        self.context = context

    def replace_with(self, value):
        tag = self.context.tag
        tag.clear_content()
        tag.element.append(new_run("" if value is None else str(value)))
