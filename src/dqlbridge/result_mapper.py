"""
DQL Result Mapper

Maps result documents returned by the store back into SQL-shaped rows:

- _id is renamed back to id unless the caller explicitly selected _id
- Synthetic aggregate keys ($1), ($2), ... are bound to the requested field
  at that 1-based position; GROUP BY passthrough fields are copied by name
- Requested fields missing from a document are left out of the row
"""

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .sql_translator.identifier_normalizer import IdentifierNormalizer

AGGREGATE_KEY_PATTERN = re.compile(r'^\(\$(\d+)\)$')


def is_aggregate_key(key: str) -> bool:
    return AGGREGATE_KEY_PATTERN.match(key) is not None


def is_aggregate_document(document: Optional[Mapping[str, Any]]) -> bool:
    """True when the document carries ($k) aggregate keys"""
    return bool(document) and any(is_aggregate_key(key) for key in document)


def aggregate_key(position: int) -> str:
    """Aggregate key for a 1-based projection position"""
    return f"(${position})"


class ResultMapper:
    """Reverse of the identifier and aggregate rewrites applied by the store"""

    def __init__(self, id_column: str = "id", id_field: str = "_id"):
        self.normalizer = IdentifierNormalizer(id_column=id_column, id_field=id_field)

    def map_result(self, document: Optional[Mapping[str, Any]],
                   fields: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        """
        Map one result document to a row.

        Args:
            document: Document returned by the store
            fields: Field names the caller selected, in projection order

        Returns:
            Row dictionary keyed by SQL field names
        """
        if not document:
            return {}

        fields = list(fields) if fields else None
        row = self._copy_plain_fields(document, fields)

        if not is_aggregate_document(document):
            return row

        if fields is None:
            # No projection to resolve positions against
            return dict(document)

        for position, name in enumerate(fields, start=1):
            if name in row:
                continue
            key = aggregate_key(position)
            if key in document:
                row[name] = document[key]

        return row

    def map_result_values(self, document: Optional[Mapping[str, Any]],
                          fields: Sequence[str]) -> List[Any]:
        """Map one document to a list of values ordered like fields"""
        row = self.map_result(document, fields)
        return [row.get(name) for name in fields]

    def map_results(self, items: Iterable[Any],
                    fields: Optional[Sequence[str]] = None) -> List[Dict[str, Any]]:
        """Map store result items (objects with .value, or plain documents) in order"""
        return [self.map_result(_item_value(item), fields) for item in items]

    def _copy_plain_fields(self, document: Mapping[str, Any],
                           fields: Optional[List[str]]) -> Dict[str, Any]:
        normalizer = self.normalizer
        keep_id_field = fields is not None and normalizer.id_field in fields
        rename = not keep_id_field and normalizer.id_column not in document

        row: Dict[str, Any] = {}
        for key, value in document.items():
            if is_aggregate_key(key):
                continue
            if rename:
                key = normalizer.denormalize_name(key)
            row[key] = value
        return row


def _item_value(item: Any) -> Any:
    return item.value if hasattr(item, 'value') else item


# Global mapper instance
_mapper = ResultMapper()


def map_dql_result_to_sql(document: Optional[Mapping[str, Any]],
                          fields: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """Map a result document using the default id/_id mapping"""
    return _mapper.map_result(document, fields)
