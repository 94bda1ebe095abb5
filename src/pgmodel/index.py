"""
Index directives and CREATE INDEX generation.

A directive is a comma separated list of `key=value` pairs attached to a
field, for example `single=asc,unique=true,lower=true` or `group=unique_name`.

Recognized keys:
- `single`: `asc` or `desc`, order of the column in its index
- `unique` / `uniq`: `true` makes a standalone index unique
- `group`: name of a composite index the column joins; a group is unique
  when its name starts with `unique`
- `lower`: `true` indexes `lower(column)` instead of the column

A directive without `group` produces one single-column index. Columns of a
group appear in the order their directives are given.
"""
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from urllib.parse import parse_qsl

from pgmodel.exceptions import InvalidIndexDirective, UnsupportedIndexKey
from pgmodel.sql import TableName, format_identifier

logger = logging.getLogger(__name__)

__all__ = ['IndexKey', 'IndexSpec', 'parse_directive', 'build_indexes', 'create_index_sql']


@dataclass(frozen=True)
class IndexKey:
    """One column reference inside an index definition.
    """
    column: str
    lower: bool = False
    ascending: bool = True

    def __str__(self) -> str:
        ref = format_identifier(self.column)
        if self.lower:
            ref = f'lower({ref})'
        return f"{ref} {'asc' if self.ascending else 'desc'}"


@dataclass(frozen=True)
class IndexSpec:
    """A single or composite index.
    """
    keys: tuple[IndexKey, ...]
    unique: bool = False

    @property
    def columns(self) -> list[str]:
        return [key.column for key in self.keys]


@dataclass(frozen=True)
class Directive:
    """Parsed form of one field's index directive.
    """
    key: IndexKey
    unique: bool = False
    group: str | None = None


def _flag(value: str) -> bool:
    return value.lower() == 'true'


def parse_directive(column: str, raw: str) -> Directive:
    """Parse one field's raw directive string.

    An empty directive asks for a plain ascending index on the column.
    """
    if not raw or not raw.strip():
        return Directive(IndexKey(column))

    try:
        pairs = parse_qsl(raw.strip().replace(',', '&'), keep_blank_values=True,
                          strict_parsing=True)
    except ValueError as err:
        raise InvalidIndexDirective(f"field '{column}', invalid index directive: {raw}") from err

    seen: set[str] = set()
    ascending = True
    unique = False
    lower = False
    group = None
    for key, value in pairs:
        if key in seen:
            raise InvalidIndexDirective(f"field '{column}': duplicated key '{key}'")
        seen.add(key)
        match key:
            case 'single':
                if value not in {'asc', 'desc'}:
                    raise InvalidIndexDirective(
                        f"field '{column}': single must be 'asc' or 'desc', got {value!r}")
                ascending = value == 'asc'
            case 'unique' | 'uniq':
                unique = _flag(value)
            case 'group':
                if not value:
                    raise InvalidIndexDirective(f"field '{column}': empty group name")
                group = value
            case 'lower':
                lower = _flag(value)
            case _:
                raise UnsupportedIndexKey(f"field '{column}', unsupported key: {key}")

    return Directive(IndexKey(column, lower=lower, ascending=ascending), unique, group)


def build_indexes(directives: Iterable[tuple[str, str]] | Mapping[str, str]) -> list[IndexSpec]:
    """Build index definitions from ordered `(column, directive)` pairs.

    Standalone indexes come first in directive order, followed by composite
    indexes in the order their groups were first seen.
    """
    if isinstance(directives, Mapping):
        directives = directives.items()

    standalone: list[IndexSpec] = []
    groups: dict[str, list[IndexKey]] = {}
    for column, raw in directives:
        directive = parse_directive(column, raw)
        if directive.group is None:
            standalone.append(IndexSpec((directive.key,), directive.unique))
            continue
        if directive.group not in groups:
            logger.debug(f'Index group {directive.group!r} started by {column}')
        groups.setdefault(directive.group, []).append(directive.key)

    grouped = [IndexSpec(tuple(keys), group.startswith('unique'))
               for group, keys in groups.items()]
    return standalone + grouped


def create_index_sql(table: TableName, spec: IndexSpec) -> str:
    """Generate the CREATE INDEX statement for one index.

    >>> create_index_sql(TableName('public', 't'), IndexSpec((IndexKey('name', lower=True),), True))
    'create unique index on public.t (lower(name) asc)'
    """
    unique = 'unique ' if spec.unique else ''
    keys = ','.join(str(key) for key in spec.keys)
    return f'create {unique}index on {table} ({keys})'
