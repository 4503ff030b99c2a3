import pytest
from datetime import date
from pydantic import ValidationError
from sprint_planner.models.entities import (
    Issue,
    PlanningResult,
    SprintPlacement,
    UNASSIGNED,
    UNSCHEDULED_LABEL,
    WorkLog,
    priority_rank,
)
from sprint_planner.services.capacity import CapacityLedger

def test_issue_creation():
    """Testa a criação de uma issue"""
    issue = Issue(key="P-1", summary="Issue 1", estimate_seconds=9000, priority="High")

    assert issue.key == "P-1"
    assert issue.hours == 2.5
    assert issue.assignee == UNASSIGNED
    assert issue.links == []

def test_issue_without_estimate():
    """Testa que estimativa ausente vale zero horas"""
    assert Issue(key="P-1").hours == 0

def test_issue_empty_assignee_is_unassigned():
    """Testa que responsável vazio vira Unassigned"""
    assert Issue(key="P-1", assignee=None).assignee == UNASSIGNED
    assert Issue(key="P-1", assignee="").assignee == UNASSIGNED

def test_issue_requires_key():
    """Testa que uma issue sem chave é inválida"""
    with pytest.raises(ValidationError):
        Issue(key="")

def test_worklog_hours_and_default_author():
    """Testa as horas do registro e o autor ausente"""
    worklog = WorkLog(issue_key="P-1", author=None, time_spent_seconds=5400, started=date(2025, 5, 27))

    assert worklog.hours == 1.5
    assert worklog.author == UNASSIGNED
    assert worklog.category is None

@pytest.mark.parametrize("priority,rank", [
    ("Highest", 0),
    ("High", 1),
    ("Medium", 2),
    ("Low", 3),
    ("Lowest", 4),
    ("Blocker", 4),
    (None, 4),
])
def test_priority_rank(priority, rank):
    """Testa o rank das prioridades"""
    assert priority_rank(priority) == rank

def test_placement_labels():
    """Testa o nome das sprints"""
    assert SprintPlacement.scheduled(3).label == "3"
    assert SprintPlacement.unscheduled().label == UNSCHEDULED_LABEL
    assert not SprintPlacement.unscheduled().is_scheduled

def test_placement_order():
    """Testa a ordem entre sprints agendadas e não agendadas"""
    first = SprintPlacement.scheduled(1)
    second = SprintPlacement.scheduled(2)
    backlog = SprintPlacement.unscheduled()

    assert first.is_before(second)
    assert not second.is_before(first)
    assert not first.is_before(first)
    assert first.is_before(backlog)
    assert not backlog.is_before(first)
    assert not backlog.is_before(backlog)

def test_placement_is_immutable():
    """Testa que a sprint atribuída não é alterada no lugar"""
    placement = SprintPlacement.scheduled(1)
    with pytest.raises(ValidationError):
        placement.number = 2

def test_placement_rejects_sprint_zero():
    """Testa que sprints começam em 1"""
    with pytest.raises(ValidationError):
        SprintPlacement.scheduled(0)

@pytest.fixture
def result():
    """Fixture para um resultado vazio com Ann em duas sprints"""
    ledger = CapacityLedger({("Ann", 1): 40.0, ("Ann", 2): 40.0})
    return PlanningResult(sprint_capacity=[], ledger=ledger, windows={}, current_sprint=1)

def test_commit_updates_ledger_and_aggregates(result):
    """Testa o registro de uma issue numa sprint"""
    planned = result.commit(Issue(key="P-1", estimate_seconds=8 * 3600, assignee="Ann"), SprintPlacement.scheduled(1))

    assert planned.sprint == "1"
    assert result.get("P-1") is planned
    assert result.ledger.remaining("Ann", 1) == 32
    assert result.used_hours("Ann", "1") == 8
    assert result.sprint_hours == {"1": {"Ann": 8}}
    assert result.scheduled_sprints == ["1"]

def test_commit_unscheduled_does_not_consume(result):
    """Testa que issues sem sprint não consomem capacity"""
    result.commit(Issue(key="P-1", estimate_seconds=8 * 3600, assignee="Ann"), SprintPlacement.unscheduled())

    assert result.ledger.remaining("Ann", 1) == 40
    assert result.used_hours("Ann", UNSCHEDULED_LABEL) == 8
    assert [p.key for p in result.unscheduled] == ["P-1"]
    assert result.scheduled_sprints == []

def test_commit_twice_is_rejected(result):
    """Testa que cada issue aparece uma única vez"""
    issue = Issue(key="P-1", assignee="Ann")
    result.commit(issue, SprintPlacement.scheduled(1))

    with pytest.raises(ValueError):
        result.commit(issue, SprintPlacement.scheduled(2))

def test_move_is_symmetric(result):
    """Testa a movimentação entre sprints"""
    planned = result.commit(Issue(key="P-1", estimate_seconds=8 * 3600, assignee="Ann"), SprintPlacement.scheduled(1))

    result.move(planned, SprintPlacement.scheduled(2))

    assert planned.sprint == "2"
    assert result.ledger.remaining("Ann", 1) == 40
    assert result.ledger.remaining("Ann", 2) == 32
    assert result.used_hours("Ann", "1") == 0
    assert result.used_hours("Ann", "2") == 8
    assert [p.key for p in result.issues_in_sprint("2")] == ["P-1"]

def test_move_to_backlog(result):
    """Testa a liberação de capacity ao mover para o backlog"""
    planned = result.commit(Issue(key="P-1", estimate_seconds=8 * 3600, assignee="Ann"), SprintPlacement.scheduled(2))

    result.move(planned, SprintPlacement.unscheduled())

    assert result.ledger.remaining("Ann", 2) == 40
    assert result.used_hours("Ann", UNSCHEDULED_LABEL) == 8
