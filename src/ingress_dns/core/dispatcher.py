"""
Request Dispatcher

Fans each question of a request out to the query processor as its own task,
waits for every task, and assembles one reply.
"""

import asyncio
import logging
from typing import List

from .message import DNSMessage, DNSQuestion, DNSResourceRecord
from .processor import QueryProcessor

logger = logging.getLogger(__name__)


class RequestDispatcher:
    """Concurrent per-question dispatch with a full join barrier"""

    def __init__(self, processor: QueryProcessor, query_timeout: float = 10.0):
        self.processor = processor
        self.query_timeout = query_timeout

    async def dispatch(self, request: DNSMessage) -> DNSMessage:
        """Build the reply for ``request``.

        The reply mirrors the request's question section. Every question is
        resolved concurrently; answers are merged only after all tasks have
        finished, in question order.
        """
        reply = request.create_response()

        results = await asyncio.gather(
            *(self._resolve_question(question) for question in request.questions)
        )

        for answers in results:
            reply.answers.extend(answers)

        return reply

    async def _resolve_question(self, question: DNSQuestion) -> List[DNSResourceRecord]:
        # Failures stay inside this task so sibling questions still get answers.
        try:
            return await asyncio.wait_for(
                self.processor.resolve(question), timeout=self.query_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Resolution of {question.name} timed out after {self.query_timeout}s"
            )
        except Exception as e:
            logger.error(
                f"Resolution of {question.name} failed: {type(e).__name__}: {e}"
            )
        return []
