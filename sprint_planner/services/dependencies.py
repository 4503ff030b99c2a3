from typing import Dict, Iterable, List, Optional, Set
from loguru import logger

from ..models.entities import Issue, IssueLink, LinkDirection

PREDECESSOR_LINK_TYPE = "Predecessor"
HAS_PREDECESSOR = "has as a predecessor"
IS_PREDECESSOR_OF = "is a predecessor of"
DEFAULT_CLOSED_STATUSES = ("Closed",)


def _normalize_statuses(statuses: Optional[Iterable[str]]) -> frozenset:
    if statuses is None:
        statuses = DEFAULT_CLOSED_STATUSES
    return frozenset(s.lower() for s in statuses)


def _is_open(status: Optional[str], closed: frozenset) -> bool:
    return (status or "").lower() not in closed


def is_predecessor_link(link: IssueLink, closed_statuses: Optional[Iterable[str]] = None) -> bool:
    """Link de saída "has as a predecessor" para uma issue aberta"""
    return (
        link.type_name == PREDECESSOR_LINK_TYPE
        and link.direction == LinkDirection.OUTWARD
        and link.outward == HAS_PREDECESSOR
        and bool(link.issue_key)
        and _is_open(link.issue_status, _normalize_statuses(closed_statuses))
    )


def is_successor_link(link: IssueLink, closed_statuses: Optional[Iterable[str]] = None) -> bool:
    """Link de entrada "is a predecessor of" para uma issue aberta"""
    return (
        link.type_name == PREDECESSOR_LINK_TYPE
        and link.direction == LinkDirection.INWARD
        and link.inward == IS_PREDECESSOR_OF
        and bool(link.issue_key)
        and _is_open(link.issue_status, _normalize_statuses(closed_statuses))
    )


class DependencyGraph:
    """
    Grafo de precedência entre issues, montado uma vez por planejamento

    As arestas vêm dos links das duas pontas: um link registrado só numa
    das issues restringe as duas.
    """

    def __init__(self):
        self._predecessors: Dict[str, Set[str]] = {}
        self._successors: Dict[str, Set[str]] = {}
        self._declared_predecessors: Dict[str, Set[str]] = {}

    @classmethod
    def build(cls, issues: Iterable[Issue], closed_statuses: Optional[Iterable[str]] = None) -> "DependencyGraph":
        """
        Monta o grafo a partir dos links das issues

        Args:
            issues: Issues do planejamento
            closed_statuses: Status que não restringem mais o planejamento

        Returns:
            DependencyGraph: Grafo com predecessoras e sucessoras abertas
        """
        closed = _normalize_statuses(closed_statuses)
        graph = cls()
        for issue in issues:
            if not _is_open(issue.status, closed):
                continue
            for link in issue.links:
                if is_predecessor_link(link, closed):
                    if graph._add_edge(link.issue_key, issue.key):
                        graph._declared_predecessors.setdefault(issue.key, set()).add(link.issue_key)
                elif is_successor_link(link, closed):
                    graph._add_edge(issue.key, link.issue_key)

        edges = sum(len(s) for s in graph._successors.values())
        logger.info(f"Grafo de dependências montado com {edges} arestas")
        return graph

    def _add_edge(self, predecessor: str, successor: str) -> bool:
        if predecessor == successor:
            logger.warning(f"Issue {predecessor} aponta para si mesma como predecessora, ignorando")
            return False
        self._successors.setdefault(predecessor, set()).add(successor)
        self._predecessors.setdefault(successor, set()).add(predecessor)
        return True

    def predecessors_of(self, key: str) -> List[str]:
        return sorted(self._predecessors.get(key, ()))

    def successors_of(self, key: str) -> List[str]:
        return sorted(self._successors.get(key, ()))

    def declared_predecessors_of(self, key: str) -> List[str]:
        """Predecessoras registradas nos links da própria issue"""
        return sorted(self._declared_predecessors.get(key, ()))

    def has_links(self, key: str) -> bool:
        return bool(self._predecessors.get(key) or self._successors.get(key))

    def all_successors(self, key: str) -> Set[str]:
        """Todas as sucessoras da cadeia (seguro contra ciclos)"""
        return self._walk(key, self._successors)

    @staticmethod
    def _walk(key: str, edges: Dict[str, Set[str]]) -> Set[str]:
        found: Set[str] = set()
        pending = list(edges.get(key, ()))
        while pending:
            current = pending.pop()
            if current in found:
                continue
            found.add(current)
            pending.extend(edges.get(current, ()))
        found.discard(key)
        return found
