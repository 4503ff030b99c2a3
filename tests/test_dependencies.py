from sprint_planner.models.entities import Issue, IssueLink, LinkDirection
from sprint_planner.services.dependencies import (
    DependencyGraph,
    is_predecessor_link,
    is_successor_link,
)
from tests.factories import predecessor_link, successor_link

def test_predecessor_link_classification():
    """Testa a identificação de links de predecessora"""
    assert is_predecessor_link(predecessor_link("P-1"))
    assert not is_predecessor_link(successor_link("P-1"))
    assert not is_predecessor_link(predecessor_link("P-1", status="Closed"))

def test_successor_link_classification():
    """Testa a identificação de links de sucessora"""
    assert is_successor_link(successor_link("P-2"))
    assert not is_successor_link(predecessor_link("P-2"))
    assert not is_successor_link(successor_link("P-2", status="closed"))

def test_other_link_types_are_ignored():
    """Testa que outros tipos de link não geram dependências"""
    link = IssueLink(
        type_name="Relates",
        inward="relates to",
        outward="relates to",
        direction=LinkDirection.OUTWARD,
        issue_key="P-1",
    )
    assert not is_predecessor_link(link)
    assert not is_successor_link(link)

def test_custom_closed_statuses():
    """Testa a lista configurável de status fechados"""
    link = predecessor_link("P-1", status="Done")

    assert is_predecessor_link(link)
    assert not is_predecessor_link(link, ["done"])
    assert is_predecessor_link(predecessor_link("P-1", status="Closed"), [])

def test_graph_merges_links_from_both_ends():
    """Testa que um link registrado só numa ponta restringe as duas issues"""
    issues = [
        Issue(key="P-1", links=[successor_link("P-2")]),
        Issue(key="P-2"),
        Issue(key="P-3", links=[predecessor_link("P-2")]),
    ]
    graph = DependencyGraph.build(issues)

    assert graph.successors_of("P-1") == ["P-2"]
    assert graph.predecessors_of("P-2") == ["P-1"]
    assert graph.successors_of("P-2") == ["P-3"]
    assert graph.predecessors_of("P-3") == ["P-2"]

def test_declared_and_inferred_predecessors():
    """Testa a diferença entre predecessoras declaradas e inferidas"""
    issues = [
        Issue(key="P-1", links=[successor_link("P-2")]),
        Issue(key="P-2"),
        Issue(key="P-3", links=[predecessor_link("P-1")]),
    ]
    graph = DependencyGraph.build(issues)

    assert graph.declared_predecessors_of("P-2") == []
    assert graph.predecessors_of("P-2") == ["P-1"]
    assert graph.declared_predecessors_of("P-3") == ["P-1"]

def test_links_of_closed_issues_are_ignored():
    """Testa que uma issue fechada não restringe o planejamento"""
    issues = [
        Issue(key="P-1", status="Closed", links=[successor_link("P-2")]),
        Issue(key="P-2"),
    ]
    graph = DependencyGraph.build(issues)

    assert graph.predecessors_of("P-2") == []
    assert not graph.has_links("P-1")

def test_self_links_are_ignored():
    """Testa que uma issue não pode ser predecessora de si mesma"""
    graph = DependencyGraph.build([Issue(key="P-1", links=[predecessor_link("P-1")])])

    assert graph.predecessors_of("P-1") == []
    assert graph.successors_of("P-1") == []

def test_duplicate_links_produce_single_edge():
    """Testa links repetidos nas duas pontas"""
    issues = [
        Issue(key="P-1", links=[successor_link("P-2"), successor_link("P-2")]),
        Issue(key="P-2", links=[predecessor_link("P-1")]),
    ]
    graph = DependencyGraph.build(issues)

    assert graph.successors_of("P-1") == ["P-2"]
    assert graph.predecessors_of("P-2") == ["P-1"]

def test_transitive_walk_is_cycle_safe():
    """Testa a busca transitiva com ciclo no grafo"""
    issues = [
        Issue(key="P-1", links=[successor_link("P-2")]),
        Issue(key="P-2", links=[successor_link("P-3")]),
        Issue(key="P-3", links=[successor_link("P-1")]),
    ]
    graph = DependencyGraph.build(issues)

    assert graph.all_successors("P-1") == {"P-2", "P-3"}
