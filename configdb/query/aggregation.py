"""
Predefined aggregation queries.

A template is a JSON (or YAML) pipeline with ``${name}`` placeholders.
Templates are compiled once into an immutable TemplateRegistry, which is
handed to the AggregationRunner; nothing is registered globally.

String arguments are substituted without surrounding quotes, so a template
quotes them itself: ``{"$gte": "${from_date}"}``. Numbers, booleans and
None are substituted as JSON literals. ``skip`` and ``limit`` are always
supplied by the runner.
"""

from __future__ import annotations

import json
import string
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

import yaml

from ..core.exceptions import TemplateError, TemplateNotFoundError
from ..core.scope import RequestScope
from ..core.store import MongoStore, store_errors
from ..utils.logging import get_logger, log_enter_exit
from .models import AggResult
from .pipeline import MAX_AGGREGATION_LIMIT, build_agg_result, resolve_limit


logger = get_logger(__name__)

PREDEFINED_QUERIES_DIR = Path(__file__).parent / "templates"
TEMPLATE_SUFFIXES = (".json", ".yaml", ".yml")

CUSTOMERS_WITH_SCANS_BETWEEN_DATES = "customersWithScansBetweenDates"


class PipelineTemplate(string.Template):
    """
    Only braced ${name} placeholders are substituted. A bare "$" (as in
    "$match" or "$$ROOT") is pipeline syntax and stays as is.
    """
    pattern = r"""
    \$(?:
        (?P<escaped>(?!)) |
        (?P<named>(?!)) |
        \{(?P<braced>[_a-z][_a-z0-9]*)\} |
        (?P<invalid>(?!))
    )
    """


class _ProbeArgs(dict):
    """Placeholder values for the load-time trial render."""

    def __missing__(self, key):
        return "0"


def format_arg(value: Any) -> str:
    """Template argument as it appears in the rendered pipeline text."""
    if isinstance(value, str):
        return json.dumps(value)[1:-1]
    return json.dumps(value, default=str)


@dataclass(frozen=True)
class QueryTemplate:
    """One compiled predefined query."""
    name: str
    source: str

    def render(self, args: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """Substitute args and parse the result into a pipeline."""
        try:
            text = PipelineTemplate(self.source).substitute(
                {k: format_arg(v) for k, v in args.items()}
            )
        except KeyError as e:
            raise TemplateError(f"template '{self.name}' is missing argument {e}")
        return self._parse(text)

    def _parse(self, text: str) -> List[Dict[str, Any]]:
        try:
            pipeline = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise TemplateError(f"template '{self.name}' did not render a valid pipeline: {e}")
        if not isinstance(pipeline, list) or not all(isinstance(s, dict) for s in pipeline):
            raise TemplateError(
                f"template '{self.name}' must render a list of pipeline stages"
            )
        return pipeline

    def check(self) -> None:
        """Trial render with placeholder values; raises TemplateError."""
        self._parse(PipelineTemplate(self.source).substitute(_ProbeArgs()))


class TemplateRegistry:
    """
    Immutable name -> QueryTemplate mapping.

    Example:
        >>> registry = TemplateRegistry.load()
        >>> registry.get(CUSTOMERS_WITH_SCANS_BETWEEN_DATES).render(
        ...     {"from_date": "2024-01-01", "to_date": "2024-02-01", "skip": 0, "limit": 10})
    """

    def __init__(self, templates: Mapping[str, QueryTemplate]):
        self._templates = MappingProxyType(dict(templates))

    @classmethod
    def from_sources(cls, sources: Mapping[str, str]) -> "TemplateRegistry":
        """Compile templates from name -> source text; fails on the first bad one."""
        templates = {}
        for name, source in sources.items():
            template = QueryTemplate(name=name, source=source)
            template.check()
            templates[name] = template
        return cls(templates)

    @classmethod
    def load(cls, directory: Optional[Union[str, Path]] = None) -> "TemplateRegistry":
        """
        Compile every template file in a directory (the bundled predefined
        queries by default). The file stem is the template name.
        """
        path = Path(directory) if directory is not None else PREDEFINED_QUERIES_DIR
        if not path.is_dir():
            raise TemplateError(f"templates directory not found: {path}")

        sources = {
            f.stem: f.read_text(encoding="utf-8")
            for f in sorted(path.iterdir())
            if f.suffix in TEMPLATE_SUFFIXES
        }
        registry = cls.from_sources(sources)
        logger.info(f"Loaded {len(registry)} query templates from {path}")
        return registry

    def get(self, name: str) -> QueryTemplate:
        try:
            return self._templates[name]
        except KeyError:
            raise TemplateNotFoundError(f"no query template named '{name}'")

    def names(self) -> List[str]:
        return sorted(self._templates)

    def __contains__(self, name: object) -> bool:
        return name in self._templates

    def __iter__(self) -> Iterator[str]:
        return iter(self._templates)

    def __len__(self) -> int:
        return len(self._templates)


class AggregationRunner:
    """
    Runs predefined queries against a store.

    Args:
        store: Document store
        registry: Compiled templates
        max_limit: Upper bound (and default) for the page size
    """

    def __init__(
        self,
        store: MongoStore,
        registry: TemplateRegistry,
        max_limit: int = MAX_AGGREGATION_LIMIT,
    ):
        self.store = store
        self.registry = registry
        self.max_limit = max_limit

    @log_enter_exit(logger)
    def aggregate(
        self,
        scope: RequestScope,
        template_name: str,
        limit: int = 0,
        cursor: int = 0,
        template_args: Optional[Mapping[str, Any]] = None,
        decode: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> AggResult:
        """
        Render a template and run it on the scope's collection.

        Args:
            scope: Request scope (collection and deadline)
            template_name: Registered template name
            limit: Page size; 0 or anything above max_limit means max_limit
            cursor: Documents to skip
            template_args: Extra template arguments
            decode: Optional decoder applied to every result document

        Returns:
            Paginated result; metadata.next_skip is 0 on the last page
        """
        limit = resolve_limit(limit, self.max_limit)
        args = dict(template_args or {})
        args["skip"] = cursor
        args["limit"] = limit

        pipeline = self.registry.get(template_name).render(args)
        logger.debug(
            f"Running template '{template_name}' on '{scope.collection}' "
            f"(skip={cursor}, limit={limit})"
        )

        with scope.deadline(), store_errors(f"failed aggregate {template_name}"):
            docs = list(self.store.read_collection(scope.collection).aggregate(pipeline))

        return build_agg_result(docs, cursor, limit, decode)
