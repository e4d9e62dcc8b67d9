"""
Parsing of product records (XML or JSON) into a validated ``Product`` and its
embeddable chunks, in a single pass over the record.
"""

import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple, Union
from urllib.parse import urlparse

from pydantic import ValidationError

from product_finder.core.exceptions import InvalidProduct
from product_finder.schemas.product import (
    MULTI_VALUE_TYPES,
    Chunk,
    ChunkType,
    ParsedProduct,
    Product,
)

logger = logging.getLogger(__name__)

Record = Union[Dict[str, Any], ET.Element]

PRODUCT_FIELDS = {
    "id",
    "name",
    "sku",
    "description",
    "brand",
    "category",
    "price",
    "image_url",
    "rating",
    "stock",
}

# Nomes alternativos usados por alguns fornecedores
FIELD_ALIASES = {
    "title": "name",
    "imageUrl": "image_url",
    "image": "image_url",
    "img_url": "image_url",
}

NESTED_FIELDS = {"specifications", "features"}

# Campos escalares que viram chunks, na ordem de emissão
CHUNK_FIELDS = [
    ("name", ChunkType.NAME),
    ("description", ChunkType.DESCRIPTION),
    ("brand", ChunkType.BRAND),
    ("category", ChunkType.CATEGORY),
    ("price", ChunkType.PRICE),
    ("image_url", ChunkType.IMAGE),
]


def is_valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class ChunkCollector:
    """Accumulates chunks, dropping blanks and repeated (type, content) pairs."""

    def __init__(self, product_id: int, product_name: str):
        self.product_id = product_id
        self.product_name = product_name
        self.chunks: List[Chunk] = []
        self._seen = set()

    def add(self, chunk_type: ChunkType, content: Any, field: str) -> None:
        text = str(content).strip() if content is not None else ""
        if not text:
            return

        if chunk_type not in MULTI_VALUE_TYPES:
            key = (chunk_type, text)
            if key in self._seen:
                return
            self._seen.add(key)

        self.chunks.append(
            Chunk(
                product_id=self.product_id,
                product_name=self.product_name,
                type=chunk_type,
                content=text,
                field=field,
            )
        )


def _split_fields(
    pairs: List[Tuple[str, Any]],
) -> Tuple[Dict[str, Any], List[Tuple[str, Any]]]:
    """Separates known product fields from unrecognized leaf fields."""
    fields = {key: value for key, value in pairs if key in PRODUCT_FIELDS}
    extras = []
    for key, value in pairs:
        if key in PRODUCT_FIELDS:
            continue
        if key in FIELD_ALIASES:
            fields.setdefault(FIELD_ALIASES[key], value)
        else:
            extras.append((key, value))
    return fields, extras


def _format_errors(error: ValidationError) -> str:
    details = [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()
    ]
    return "Product validation failed: " + ", ".join(details)


def _build(
    fields: Dict[str, Any],
    specifications: Dict[str, Any],
    features: List[Any],
    extras: List[Tuple[str, Any]],
) -> ParsedProduct:
    features = [str(f).strip() for f in features if f is not None and str(f).strip()]
    try:
        product = Product(**fields, specifications=specifications, features=features)
    except ValidationError as e:
        raise InvalidProduct(_format_errors(e)) from e

    collector = ChunkCollector(product.id, product.display_name)

    for field, chunk_type in CHUNK_FIELDS:
        raw = fields.get(field)
        if raw is None:
            continue
        content = str(raw).strip()
        if chunk_type is ChunkType.IMAGE and not is_valid_url(content):
            logger.debug(f"Produto {product.id}: URL de imagem inválida ignorada: {content!r}")
            continue
        collector.add(chunk_type, content, field)

    for name, value in product.specifications.items():
        if name.strip() and value.strip():
            collector.add(
                ChunkType.SPECIFICATION, f"{name.strip()}: {value.strip()}", f"specification_{name}"
            )

    for feature in product.features:
        collector.add(ChunkType.FEATURE, feature, "feature")

    for name, value in extras:
        collector.add(ChunkType.GENERIC, value, name)

    return ParsedProduct(product=product, chunks=collector.chunks)


def parse_product_json(data: Any) -> ParsedProduct:
    if not isinstance(data, dict):
        raise InvalidProduct("Product payload must be a JSON object")

    pairs = [(k, v) for k, v in data.items() if k not in NESTED_FIELDS]
    fields, extras = _split_fields(pairs)
    # Só folhas escalares viram chunk genérico
    extras = [
        (k, v)
        for k, v in extras
        if isinstance(v, (str, int, float)) and not isinstance(v, bool)
    ]

    specifications = data.get("specifications") or {}
    if isinstance(specifications, list):
        specifications = {
            str(spec.get("name", "")): spec.get("value")
            for spec in specifications
            if isinstance(spec, dict)
        }
    elif not isinstance(specifications, dict):
        raise InvalidProduct("Product validation failed: specifications: must be an object")

    features = data.get("features") or []
    if not isinstance(features, list):
        raise InvalidProduct("Product validation failed: features: must be a list")

    return _build(fields, specifications, features, extras)


def parse_product_xml(node: ET.Element) -> ParsedProduct:
    pairs = []
    specifications: Dict[str, Any] = {}
    features: List[Any] = []

    for child in node:
        if child.tag == "specifications":
            for spec in child.findall("specification"):
                specifications[spec.get("name", "")] = spec.text or ""
        elif child.tag == "features":
            features = [feature.text for feature in child.findall("feature")]
        elif len(child) == 0:
            pairs.append((child.tag, child.text))

    fields, extras = _split_fields(pairs)
    return _build(fields, specifications, features, extras)


def parse_record(record: Record) -> ParsedProduct:
    if isinstance(record, ET.Element):
        return parse_product_xml(record)
    return parse_product_json(record)


def iter_catalog_file(path: Union[str, Path]) -> Iterator[Record]:
    """
    Yields raw product records from an XML (``<products><product>...``) or
    JSON (object, list, or ``{"products": [...]}``) catalog file.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".xml":
        try:
            root = ET.parse(path).getroot()
        except ET.ParseError as e:
            raise InvalidProduct(f"Invalid XML catalog file: {e}") from e
        if root.tag == "product":
            yield root
        else:
            yield from root.findall("product")

    elif suffix == ".json":
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise InvalidProduct(f"Invalid JSON catalog file: {e}") from e
        if isinstance(data, dict) and isinstance(data.get("products"), list):
            yield from data["products"]
        elif isinstance(data, list):
            yield from data
        else:
            yield data

    else:
        raise InvalidProduct(f"Unsupported catalog format: {suffix or path.name}")
