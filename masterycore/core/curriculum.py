"""
Curriculum: the fixed universe of topics grouped by domain.

Topic identifiers are canonical strings; this module never tries to match
free-text labels. The bundled Security+ curriculum ships in
``masterycore/data/curriculum.json`` and can be replaced through
``Settings.curriculum_path``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Iterator

from loguru import logger

from masterycore.core.models import CurriculumError


@dataclass(frozen=True)
class Domain:
    """A block of related topics."""

    id: str
    label: str
    topics: tuple[str, ...]


class Curriculum:
    """
    Ordered, immutable set of domains and their topics.

    Each topic belongs to exactly one domain.
    """

    def __init__(self, domains: list[Domain], name: str = ""):
        if not domains or not any(d.topics for d in domains):
            raise CurriculumError("Curriculum has no topics")

        self.name = name
        self._domains: dict[str, Domain] = {}
        self._topic_domain: dict[str, str] = {}

        for domain in domains:
            if domain.id in self._domains:
                raise CurriculumError(f"Duplicate domain id: {domain.id}")
            self._domains[domain.id] = domain
            for topic in domain.topics:
                if topic in self._topic_domain:
                    raise CurriculumError(
                        f"Topic {topic!r} listed in both {self._topic_domain[topic]} and {domain.id}"
                    )
                self._topic_domain[topic] = domain.id

    @classmethod
    def from_mapping(cls, mapping: dict[str, list[str]], name: str = "") -> Curriculum:
        """Build from ``{domain_id: [topic, ...]}``; labels default to the id."""
        return cls(
            [Domain(id=d, label=d, topics=tuple(topics)) for d, topics in mapping.items()],
            name=name,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Curriculum:
        """Build from the JSON document layout used by curriculum.json."""
        try:
            domains = [
                Domain(
                    id=str(block["id"]),
                    label=str(block.get("label") or block["id"]),
                    topics=tuple(str(t) for t in block.get("topics", [])),
                )
                for block in data["domains"]
            ]
        except (KeyError, TypeError) as e:
            raise CurriculumError(f"Malformed curriculum document: {e}") from e
        return cls(domains, name=str(data.get("name", "")))

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    @property
    def domains(self) -> list[Domain]:
        return list(self._domains.values())

    @property
    def domain_ids(self) -> list[str]:
        return list(self._domains.keys())

    @property
    def topics(self) -> list[str]:
        """All topics in curriculum order."""
        return list(self._topic_domain.keys())

    def domain_of(self, topic: str) -> str | None:
        return self._topic_domain.get(topic)

    def topics_in(self, domain_id: str) -> list[str]:
        domain = self._domains.get(domain_id)
        return list(domain.topics) if domain else []

    def __contains__(self, topic: object) -> bool:
        return topic in self._topic_domain

    def __iter__(self) -> Iterator[str]:
        return iter(self._topic_domain)

    def __len__(self) -> int:
        return len(self._topic_domain)

    def __repr__(self) -> str:
        return f"Curriculum(name={self.name!r}, domains={len(self._domains)}, topics={len(self)})"


def load_curriculum(path: Path | str | None = None) -> Curriculum:
    """
    Load a curriculum from a JSON file, or the bundled one when path is None.

    Raises:
        CurriculumError: file missing, unreadable or malformed
    """
    try:
        if path is None:
            text = resources.files("masterycore.data").joinpath("curriculum.json").read_text(encoding="utf-8")
        else:
            text = Path(path).read_text(encoding="utf-8")
        data = json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        raise CurriculumError(f"Cannot read curriculum {path or '<bundled>'}: {e}") from e

    curriculum = Curriculum.from_dict(data)
    logger.debug(f"Loaded {curriculum!r}")
    return curriculum


@lru_cache(maxsize=1)
def default_curriculum() -> Curriculum:
    """Bundled curriculum, loaded once."""
    return load_curriculum()
