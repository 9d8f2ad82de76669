"""
Query Processor

Resolves a single question: fetch the ingress inventory, match the name, then
either synthesize the ingress answer or delegate to the fallback resolver.
"""

import logging
from typing import List

from .fallback import FallbackError, FallbackResolver
from .inventory import InventoryError, InventorySource
from .matcher import SUFFIX_MODE, match_rules
from .message import DNSQuestion, DNSRecordType, DNSResourceRecord, create_a_record

logger = logging.getLogger(__name__)


class QueryProcessor:
    """Per-question resolution pipeline"""

    def __init__(
        self,
        inventory: InventorySource,
        fallback: FallbackResolver,
        response_address: str,
        ttl: int = 300,
        wildcard_mode: str = SUFFIX_MODE,
    ):
        self.inventory = inventory
        self.fallback = fallback
        self.response_address = response_address
        self.ttl = ttl
        self.wildcard_mode = wildcard_mode

    async def resolve(self, question: DNSQuestion) -> List[DNSResourceRecord]:
        """Resolve one question into answer records.

        Only A questions are answered. Inventory failures short-circuit with
        no answers and no fallback; fallback failures yield no answers.
        """
        if question.qtype != DNSRecordType.A:
            return []

        name = question.bare_name
        logger.debug(f"Query: {name}")

        try:
            rules = await self.inventory.list_hostnames()
        except InventoryError as e:
            logger.error(f"Error fetching ingresses for {name}: {e}")
            return []

        if match_rules(rules, name, self.wildcard_mode):
            answer = create_a_record(question.name, self.response_address, self.ttl)
            logger.debug(f"Answer: {answer}")
            return [answer]

        try:
            answers = await self.fallback.resolve(name)
        except FallbackError as e:
            logger.warning(f"Fallback DNS query failed for {name}: {e}")
            return []

        for answer in answers:
            logger.debug(f"Answer: {answer}")
        return list(answers)
