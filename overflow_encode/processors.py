"""
Processor catalog: encoders available in a region, by name and version.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from boto3.dynamodb.conditions import Attr

from .errors import ProcessorNotFound
from .retry import NO_RETRY, RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class Processor:
    processor_id: str
    name: str
    version: str
    vendor: str = ""


def parse_version(version: str) -> Optional[Tuple[int, ...]]:
    """Dotted numeric version as a comparable tuple, None when malformed"""
    parts = version.strip().split('.')
    if not 2 <= len(parts) <= 4:
        return None
    try:
        numbers = tuple(int(p) for p in parts)
    except ValueError:
        return None
    if any(n < 0 for n in numbers):
        return None
    return numbers


class ProcessorCatalog:
    def __init__(self, table, region_name: str, retry: RetryPolicy = NO_RETRY):
        self.table = table
        self.region_name = region_name
        self.retry = retry

    def _scan_by_name(self, name: str) -> List[dict]:
        items = []
        kwargs = {'FilterExpression': Attr('name').eq(name)}
        while True:
            response = self.table.scan(**kwargs)
            items.extend(response.get('Items', []))
            if 'LastEvaluatedKey' not in response:
                return items
            kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']

    def list_by_name(self, name: str) -> List[Processor]:
        items = self.retry.call(self.region_name, f"list processors {name}", self._scan_by_name, name)
        return [
            Processor(processor_id=i['processor_id'], name=i['name'], version=str(i['version']),
                      vendor=i.get('vendor', ''))
            for i in items
        ]

    def latest(self, name: str) -> Processor:
        """Processor with the numerically greatest version for a name"""
        candidates = []
        for processor in self.list_by_name(name):
            version = parse_version(processor.version)
            if version is None:
                logger.warning(f"Ignoring processor {processor.processor_id} with malformed version '{processor.version}'")
                continue
            candidates.append((version, processor))

        if not candidates:
            raise ProcessorNotFound(name)

        version, processor = max(candidates, key=lambda c: c[0])
        logger.info(f"Using processor {processor.name} {processor.version} ({processor.processor_id})")
        return processor

    def register(self, processor: Processor) -> None:
        item = {
            'processor_id': processor.processor_id,
            'name': processor.name,
            'version': processor.version,
            'vendor': processor.vendor,
        }
        self.retry.call(self.region_name, f"register processor {processor.processor_id}",
                        self.table.put_item, Item=item)
