"""
Per-annotation evaluation: the Engine, its factory, and the CommentHook
that drives one annotation from pending to executed.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from stamp.stamp_datatypes import Comment, ProcessorContext, ProcessingError
from stamp.stamp_document import DocxPart, Tag
from stamp.stamp_interpreter import Evaluator, EvaluationContext
from stamp.stamp_transformer import ExpressionParser

logger = logging.getLogger(__name__)

STATUS = "status"
EXECUTED = "executed"
CONTEXT = "context"


class Engine:
    """Evaluates the expression of one annotation."""

    def __init__(self, evaluator: Evaluator, processor_context: ProcessorContext):
        self.evaluator = evaluator
        self.processor_context = processor_context
        self.value: Any = None

    def process(self, context: EvaluationContext) -> bool:
        """Evaluates the expression; returns True once it has run.

        The result does not say whether the document changed: processors
        edit the tag themselves and an expression may legitimately yield
        None or False. The value is kept on `self.value`.

        Any failure is re-raised as ProcessingError with the original
        exception as its cause.
        """
        expression = self.processor_context.expression
        try:
            self.value = self.evaluator.evaluate(expression, context)
        except Exception as e:
            raise ProcessingError(f"Failed to process expression {expression!r}: {e}") from e
        return True


class EngineFactory:
    def __init__(self, parser: Optional[ExpressionParser] = None):
        self.parser = parser or ExpressionParser()

    def create(self, processor_context: ProcessorContext) -> Engine:
        return Engine(Evaluator(self.parser), processor_context)


class DocxHook(ABC):

    @abstractmethod
    def run(self, engine_factory, context_root, evaluation_context_factory) -> bool:
        raise NotImplementedError

    @abstractmethod
    def set_context_key(self, context_key: str) -> None:
        raise NotImplementedError


class CommentHook(DocxHook):
    """Runs one annotation at most once."""

    def __init__(self, part: DocxPart, tag: Tag, comment: Comment):
        self.part = part
        self.tag = tag
        self.comment = comment

    @property
    def executed(self) -> bool:
        return self.tag.get_attribute(STATUS) == EXECUTED

    def run(self, engine_factory, context_root, evaluation_context_factory) -> bool:
        if self.executed:
            logger.debug("Skipping executed annotation %s", self.comment.id)
            return False
        try:
            context_key = self.tag.context_key
            context_stack = context_root.find(context_key)
            processor_context = ProcessorContext(
                part=self.part,
                tag=self.tag,
                paragraph=self.tag.paragraph,
                comment=self.comment,
                expression=self.comment.expression,
                context_stack=context_stack,
                context_key=context_key,
            )
            evaluation_context = evaluation_context_factory.create(processor_context, context_stack)
            engine = engine_factory.create(processor_context)
            return engine.process(evaluation_context)
        except ProcessingError:
            raise
        except Exception as e:
            raise ProcessingError(f"Failed to prepare annotation {self.comment.id}: {e}") from e
        finally:
            self.tag.set_attribute(STATUS, EXECUTED)

    def set_context_key(self, context_key: str) -> None:
        self.tag.set_attribute(CONTEXT, context_key)

    def __repr__(self):
        return f"<CommentHook comment={self.comment.id!r} expression={self.comment.expression!r}>"
