"""
Run configuration.

RunConfig holds the query terms and output locations of one analysis run.
It is built from defaults, from a mapping, or from a YAML file:

    search_terms:
      ns_id: doid
      generic_name: '"disease ontology"'
    best_search: [ns_id, generic_name]
    min_count: 10
    data_dir: data/lit_search

NCBI credentials default to the NCBI_EMAIL / NCBI_API_KEY environment
variables.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from litsearch.domain.entities import IDENTIFIER_FIELDS, Source

from .exceptions import ConfigurationError, ErrorContext

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_TERMS: dict[str, str] = {
    "ns_id": "doid",
    "full_name": '"human disease ontology"',
    "generic_name": '"disease ontology"',
    "lynn_custom": '"disease ontology" NOT IDO',
    "website": '"disease-ontology.org"',
    "ncbo": "bioportal.bioontology.org/ontologies/doid",
    "embl_ols": "ebi.ac.uk/ols/ontologies/doid",
    "iri": "purl.obolibrary.org/obo/doid.owl",
    "iri_no_ext": "purl.obolibrary.org/obo/doid",
    "ontobee": "ontobee.org/ontology/doid",
    "github": "github.com/diseaseontology/humandiseaseontology",
    "do_wiki": "do-wiki.nubic.northwestern.edu/do-wiki/index.php/main_page",
    "sourceforge": "sourceforge.net/p/diseaseontology",
    "wikipedia": "en.wikipedia.org/wiki/disease_ontology",
}

DEFAULT_BEST_SEARCH = ["ns_id", "generic_name", "website"]
DEFAULT_SOURCE_ORDER = [Source.EUROPE_PMC, Source.PMC, Source.PUBMED]


def _env(name: str) -> str | None:
    return os.environ.get(name, "").strip() or None


@dataclass
class RunConfig:
    """
    Configuration of one literature search run.

    Attributes:
        search_terms: Ordered mapping of short term name -> query string
        best_search: Term names used for cross-source matching
        min_count: Searches with fewer hits are dropped from the filtered overlap plot
        limit: Maximum hits per search
        data_dir: Output directory for tables and the response cache
        graphics_dir: Output directory for plots
        email, api_key: NCBI credentials
        source_order: Order in which sources are folded into the MatchTable
        search_labels: Short plot labels per term name (default "#1", "#2", ...)
        match_keys: Identifier fields used for matching
    """

    search_terms: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SEARCH_TERMS))
    best_search: list[str] = field(default_factory=lambda: list(DEFAULT_BEST_SEARCH))
    min_count: int = 10
    limit: int = 10000
    data_dir: Path = Path("data/lit_search")
    graphics_dir: Path = Path("graphics/lit_search")
    email: str | None = field(default_factory=lambda: _env("NCBI_EMAIL"))
    api_key: str | None = field(default_factory=lambda: _env("NCBI_API_KEY"))
    source_order: list[Source] = field(default_factory=lambda: list(DEFAULT_SOURCE_ORDER))
    search_labels: dict[str, str] = field(default_factory=dict)
    match_keys: list[str] = field(default_factory=lambda: list(IDENTIFIER_FIELDS))

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / "raw"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RunConfig:
        """
        Build a config from a mapping; missing keys keep their defaults.

        Raises:
            ConfigurationError: Unknown keys or values of the wrong shape
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {unknown}",
                context=ErrorContext(operation="from_dict", suggestion=f"Valid keys: {sorted(known)}"),
            )

        kwargs: dict[str, Any] = {}
        try:
            if "search_terms" in data:
                kwargs["search_terms"] = {str(k): str(v) for k, v in dict(data["search_terms"]).items()}
            if "best_search" in data:
                kwargs["best_search"] = [str(s) for s in data["best_search"]]
            for key in ("min_count", "limit"):
                if key in data:
                    kwargs[key] = int(data[key])
            for key in ("data_dir", "graphics_dir"):
                if key in data:
                    kwargs[key] = Path(data[key])
            for key in ("email", "api_key"):
                if data.get(key):
                    kwargs[key] = str(data[key])
            if "source_order" in data:
                kwargs["source_order"] = [Source(s) for s in data["source_order"]]
            if "search_labels" in data:
                kwargs["search_labels"] = {str(k): str(v) for k, v in dict(data["search_labels"]).items()}
            if "match_keys" in data:
                kwargs["match_keys"] = [str(k) for k in data["match_keys"]]
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

        config = cls(**kwargs)
        config.validate()
        return config

    @classmethod
    def from_yaml(cls, path: str | Path) -> RunConfig:
        """
        Load a config from a YAML file.

        Raises:
            ConfigurationError: File unreadable, not YAML, or invalid
        """
        path = Path(path)
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read configuration file {path}: {e}",
                context=ErrorContext(operation="from_yaml", input_value=str(path)),
            ) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a mapping")
        logger.debug(f"Loaded configuration from {path}")
        return cls.from_dict(raw)

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: The configuration cannot drive a run
        """
        if not self.search_terms:
            raise ConfigurationError("At least one search term is required")
        empty = [name for name, term in self.search_terms.items() if not term.strip()]
        if empty:
            raise ConfigurationError(f"Empty search terms: {empty}")
        missing = [name for name in self.best_search if name not in self.search_terms]
        if missing:
            raise ConfigurationError(
                f"best_search names not in search_terms: {missing}",
                context=ErrorContext(suggestion=f"Choose from {list(self.search_terms)}"),
            )
        if self.min_count < 0:
            raise ConfigurationError(f"min_count must be >= 0, got {self.min_count}")
        if self.limit < 1:
            raise ConfigurationError(f"limit must be >= 1, got {self.limit}")
        if sorted(self.source_order, key=lambda s: s.value) != sorted(Source, key=lambda s: s.value):
            raise ConfigurationError(
                f"source_order must list each source once: {[s.value for s in self.source_order]}"
            )
        unknown_keys = [k for k in self.match_keys if k not in IDENTIFIER_FIELDS]
        if not self.match_keys or unknown_keys:
            raise ConfigurationError(f"match_keys must be a non-empty subset of {list(IDENTIFIER_FIELDS)}")

    def ensure_dirs(self) -> None:
        for directory in (self.data_dir, self.graphics_dir, self.cache_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def to_dict(self) -> dict[str, Any]:
        """YAML-friendly representation (credentials omitted)."""
        return {
            "search_terms": dict(self.search_terms),
            "best_search": list(self.best_search),
            "min_count": self.min_count,
            "limit": self.limit,
            "data_dir": str(self.data_dir),
            "graphics_dir": str(self.graphics_dir),
            "source_order": [s.value for s in self.source_order],
            "search_labels": dict(self.search_labels),
            "match_keys": list(self.match_keys),
        }

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), allow_unicode=True, default_flow_style=False, sort_keys=False)
