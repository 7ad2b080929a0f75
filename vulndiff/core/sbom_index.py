"""Per-revision SBOM component graph with resolution and root-path queries."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from vulndiff.core import coordinates
from vulndiff.core.models import Component
from vulndiff.core.sbom_loader import ParsedSbom

_LOG = logging.getLogger(__name__)

DEFAULT_PATH_LIMIT = 5


class SbomIndex:
    """Lookup structure over one SBOM's components and dependency edges.

    ``children_of`` and ``parents_of`` keep edge insertion order; path
    enumeration visits parents sorted by label (then ref) so that results are
    reproducible regardless of document order.
    """

    def __init__(
        self,
        components: Iterable[Component],
        dependencies: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> None:
        self.by_ref: Dict[str, Component] = {}
        self.by_purl: Dict[str, Component] = {}
        for component in components:
            self.by_ref.setdefault(component.ref, component)
            if component.purl:
                self.by_purl.setdefault(component.purl, component)

        self.children_of: Dict[str, Dict[str, None]] = {}
        self.parents_of: Dict[str, Dict[str, None]] = {}
        for parent, children in (dependencies or {}).items():
            for child in children:
                if child == parent:
                    continue
                self.children_of.setdefault(parent, {})[child] = None
                self.parents_of.setdefault(child, {})[parent] = None

        self.roots: Set[str] = {ref for ref in self.by_ref if not self.parents_of.get(ref)}
        self._nodes: Set[str] = set(self.by_ref) | set(self.children_of) | set(self.parents_of)
        self._reachable: Set[str] = self._reachable_from_roots()
        self._labels: Dict[str, str] = {
            ref: coordinates.component_label(component) for ref, component in self.by_ref.items()
        }

    @classmethod
    def from_sbom(cls, sbom: ParsedSbom) -> "SbomIndex":
        return cls(sbom.components, sbom.dependencies)

    def __len__(self) -> int:
        return len(self.by_ref)

    def resolve(self, purl: Optional[str] = None, ref: Optional[str] = None) -> Tuple[Optional[Component], Optional[str]]:
        """Find a component by exact purl, then by ref.

        Returns ``(None, None)`` when neither resolves.
        """

        if purl and purl in self.by_purl:
            component = self.by_purl[purl]
            return component, component.ref
        if ref and ref in self.by_ref:
            return self.by_ref[ref], ref
        return None, None

    def label(self, ref: str) -> str:
        return self._labels.get(ref, ref)

    def coordinates(self, component: Component) -> coordinates.Gav:
        return coordinates.component_coordinates(component)

    def is_root(self, ref: str) -> bool:
        return ref in self.roots or not self.parents_of.get(ref)

    def paths_to_target(self, ref: Optional[str], limit: int = DEFAULT_PATH_LIMIT) -> List[List[str]]:
        """Return up to *limit* distinct root-to-target label chains.

        A target without parents yields a single one-element path. Only parents
        reachable from a root are followed and a node never repeats within a
        chain. The search gives up after ``limit * node count`` expansions.
        """

        if not ref or limit <= 0:
            return []
        if not self.parents_of.get(ref):
            return [[self.label(ref)]]
        if ref not in self._reachable:
            return []

        found: List[List[str]] = []
        seen: Set[Tuple[str, ...]] = set()
        # chains are stored target-first; each stack entry is one partial chain
        stack: List[Tuple[str, ...]] = [(ref,)]
        budget = limit * max(len(self._nodes), 1)
        expansions = 0
        while stack:
            if expansions >= budget:
                _LOG.info("Path search for %s stopped after %d expansions", ref, expansions)
                break
            expansions += 1
            chain = stack.pop()
            current = chain[-1]
            if self.is_root(current):
                labels = tuple(self.label(node) for node in reversed(chain))
                if labels not in seen:
                    seen.add(labels)
                    found.append(list(labels))
                    if len(found) >= limit:
                        if stack:
                            _LOG.info("Path limit %d reached for %s", limit, ref)
                        break
                continue
            parents = [
                parent
                for parent in self._ordered(self.parents_of[current])
                if parent in self._reachable and parent not in chain
            ]
            for parent in reversed(parents):
                stack.append(chain + (parent,))
        return found

    def _ordered(self, refs: Iterable[str]) -> Sequence[str]:
        return sorted(refs, key=lambda item: (self.label(item), item))

    def _reachable_from_roots(self) -> Set[str]:
        reachable: Set[str] = set()
        stack = [ref for ref in self._nodes if not self.parents_of.get(ref)]
        while stack:
            current = stack.pop()
            if current in reachable:
                continue
            reachable.add(current)
            stack.extend(child for child in self.children_of.get(current, {}) if child not in reachable)
        return reachable
