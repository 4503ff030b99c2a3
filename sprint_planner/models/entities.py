from datetime import date
from typing import TYPE_CHECKING, Dict, List, Optional
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from ..services.capacity import CapacityLedger

UNASSIGNED = "Unassigned"
UNSCHEDULED_LABEL = "100"


class LinkDirection(str, Enum):
    """Direção de um link entre issues"""
    INWARD = "inward"
    OUTWARD = "outward"


class Priority(str, Enum):
    """Prioridades conhecidas, da mais alta para a mais baixa"""
    HIGHEST = "Highest"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    LOWEST = "Lowest"


PRIORITY_RANK: Dict[str, int] = {
    Priority.HIGHEST.value: 0,
    Priority.HIGH.value: 1,
    Priority.MEDIUM.value: 2,
    Priority.LOW.value: 3,
    Priority.LOWEST.value: 4,
}


def priority_rank(priority: Optional[str]) -> int:
    """Retorna o rank da prioridade; prioridade desconhecida conta como Lowest"""
    return PRIORITY_RANK.get(priority or "", PRIORITY_RANK[Priority.LOWEST.value])


class IssueLink(BaseModel):
    """Link tipado entre duas issues"""
    type_name: str
    inward: str = ""
    outward: str = ""
    direction: LinkDirection
    issue_key: str
    issue_status: Optional[str] = None


class Issue(BaseModel):
    """Modelo de uma issue do Jira"""
    key: str = Field(..., min_length=1)
    summary: str = ""
    estimate_seconds: Optional[int] = None
    due_date: Optional[date] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assignee: str = UNASSIGNED
    project_key: Optional[str] = None
    links: List[IssueLink] = Field(default_factory=list)

    @field_validator("assignee", mode="before")
    @classmethod
    def default_assignee(cls, v) -> str:
        """Issues sem responsável ficam como Unassigned"""
        return v or UNASSIGNED

    @property
    def hours(self) -> float:
        """Estimativa restante em horas"""
        return (self.estimate_seconds or 0) / 3600


class SprintPlacement(BaseModel):
    """Sprint atribuída a uma issue: agendada numa sprint ou não agendada"""
    model_config = ConfigDict(frozen=True)

    number: Optional[int] = Field(default=None, ge=1)

    @classmethod
    def scheduled(cls, number: int) -> "SprintPlacement":
        return cls(number=number)

    @classmethod
    def unscheduled(cls) -> "SprintPlacement":
        return cls(number=None)

    @property
    def is_scheduled(self) -> bool:
        return self.number is not None

    @property
    def label(self) -> str:
        """Nome da sprint; issues não agendadas ficam na sprint "100" """
        return str(self.number) if self.number is not None else UNSCHEDULED_LABEL

    def is_before(self, other: "SprintPlacement") -> bool:
        """
        Verifica se esta sprint vem estritamente antes de outra

        Uma sprint agendada vem antes de "não agendada"; duas issues não
        agendadas não têm ordem entre si.
        """
        if self.number is None:
            return False
        if other.number is None:
            return True
        return self.number < other.number


class SprintWindow(BaseModel):
    """Janela de datas de uma sprint (início e fim inclusivos)"""
    number: int
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class SprintCapacity(BaseModel):
    """Capacity de um funcionário numa sprint"""
    employee: str
    sprint: str
    project: str = ""
    capacity: float
    available_capacity: float
    start_date: Optional[date] = None


class PlannedIssue(BaseModel):
    """Issue atribuída a uma sprint"""
    issue: Issue
    placement: SprintPlacement
    assignee: str
    hours: float

    @property
    def key(self) -> str:
        return self.issue.key

    @property
    def sprint(self) -> str:
        return self.placement.label


class WorkLog(BaseModel):
    """Horas registradas por um funcionário numa issue"""
    issue_key: str
    author: str = UNASSIGNED
    time_spent_seconds: int = 0
    started: date
    category: Optional[str] = None
    comment: Optional[str] = None

    @field_validator("author", mode="before")
    @classmethod
    def default_author(cls, v) -> str:
        return v or UNASSIGNED

    @property
    def hours(self) -> float:
        return self.time_spent_seconds / 3600


class EmployeeEfficiency(BaseModel):
    """Horas registradas contra horas estimadas de um funcionário"""
    employee: str
    estimated_hours: float
    logged_hours: float
    efficiency: float
    issue_keys: List[str] = Field(default_factory=list)


class PlanningResult:
    """Resultado do planejamento de um projeto"""

    def __init__(
        self,
        sprint_capacity: List[SprintCapacity],
        ledger: "CapacityLedger",
        windows: Dict[int, SprintWindow],
        current_sprint: int,
        project: Optional[str] = None,
    ):
        self.planned_issues: List[PlannedIssue] = []
        self.sprint_capacity = sprint_capacity
        self.ledger = ledger
        self.windows = windows
        self.current_sprint = current_sprint
        self.project = project
        self.employee_sprint_used_hours: Dict[str, Dict[str, float]] = {}
        self.sprint_hours: Dict[str, Dict[str, float]] = {}
        self._by_key: Dict[str, PlannedIssue] = {}

    def get(self, key: str) -> Optional[PlannedIssue]:
        """Retorna a issue planejada com a chave informada"""
        return self._by_key.get(key)

    def commit(self, issue: Issue, placement: SprintPlacement) -> PlannedIssue:
        """
        Registra uma issue numa sprint e atualiza capacity e agregados

        Args:
            issue: Issue a ser registrada
            placement: Sprint escolhida

        Returns:
            PlannedIssue: Registro criado
        """
        if issue.key in self._by_key:
            raise ValueError(f"Issue {issue.key} já foi planejada")

        planned = PlannedIssue(
            issue=issue,
            placement=placement,
            assignee=issue.assignee,
            hours=issue.hours,
        )
        self.planned_issues.append(planned)
        self._by_key[issue.key] = planned

        if placement.is_scheduled:
            self.ledger = self.ledger.consume(planned.assignee, placement.number, planned.hours)
        self._add_hours(planned.assignee, placement.label, planned.hours)
        return planned

    def move(self, planned: PlannedIssue, placement: SprintPlacement) -> None:
        """
        Move uma issue planejada para outra sprint mantendo os agregados simétricos

        Args:
            planned: Issue planejada
            placement: Nova sprint
        """
        old = planned.placement
        if old == placement:
            return

        self.ledger = self.ledger.move(planned.assignee, old.number, placement.number, planned.hours)
        self._add_hours(planned.assignee, old.label, -planned.hours)
        self._add_hours(planned.assignee, placement.label, planned.hours)
        planned.placement = placement

    def _add_hours(self, employee: str, sprint: str, hours: float) -> None:
        sprint_hours = self.sprint_hours.setdefault(sprint, {})
        sprint_hours[employee] = sprint_hours.get(employee, 0.0) + hours
        used = self.employee_sprint_used_hours.setdefault(employee, {})
        used[sprint] = used.get(sprint, 0.0) + hours

    def used_hours(self, employee: str, sprint: str) -> float:
        return self.employee_sprint_used_hours.get(employee, {}).get(sprint, 0.0)

    def issues_in_sprint(self, sprint: str) -> List[PlannedIssue]:
        return [p for p in self.planned_issues if p.sprint == sprint]

    @property
    def unscheduled(self) -> List[PlannedIssue]:
        """Issues que não couberam em nenhuma sprint"""
        return [p for p in self.planned_issues if not p.placement.is_scheduled]

    @property
    def scheduled_sprints(self) -> List[str]:
        """Sprints com pelo menos uma issue agendada, em ordem"""
        numbers = sorted({p.placement.number for p in self.planned_issues if p.placement.is_scheduled})
        return [str(n) for n in numbers]
