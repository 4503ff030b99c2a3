import re
from typing import Iterable, List, Tuple

from ..models.entities import Issue, priority_rank
from .dependencies import DependencyGraph

BUCKET_NAMES = (
    "predecessoras",
    "com predecessoras",
    "apenas sucessoras",
    "com due date",
    "sem restrições",
)


def natural_key(key: str) -> Tuple:
    """Ordena PRJ-2 antes de PRJ-10"""
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in re.split(r"(\d+)", key)
    )


def _sort_key(issue: Issue) -> Tuple:
    return priority_rank(issue.priority), natural_key(issue.key)


def group_issues(issues: Iterable[Issue], graph: DependencyGraph) -> List[List[Issue]]:
    """
    Separa as issues em cinco grupos disjuntos, na ordem de planejamento

    1. issues que são predecessoras de outras
    2. issues que declaram predecessoras
    3. issues que só aparecem como sucessoras nos links de outras issues
    4. issues sem links mas com due date
    5. todas as demais

    Cada issue entra no primeiro grupo em que se encaixa. Dentro do grupo a
    ordem é por prioridade e depois pela chave da issue.

    Args:
        issues: Issues a serem agrupadas
        graph: Grafo de dependências

    Returns:
        List[List[Issue]]: Os cinco grupos ordenados
    """
    groups: List[List[Issue]] = [[] for _ in BUCKET_NAMES]
    for issue in issues:
        if graph.successors_of(issue.key):
            groups[0].append(issue)
        elif graph.declared_predecessors_of(issue.key):
            groups[1].append(issue)
        elif graph.predecessors_of(issue.key):
            groups[2].append(issue)
        elif issue.due_date and not graph.has_links(issue.key):
            groups[3].append(issue)
        else:
            groups[4].append(issue)

    return [sorted(group, key=_sort_key) for group in groups]


def sort_issues(issues: Iterable[Issue], graph: DependencyGraph) -> List[Issue]:
    """Lista única na ordem em que as issues devem ser planejadas"""
    return [issue for group in group_issues(issues, graph) for issue in group]
