from datetime import date
from typing import Iterable, List, Optional, Tuple
from loguru import logger

from ..models.entities import (
    Issue,
    PlannedIssue,
    PlanningResult,
    SprintCapacity,
    SprintPlacement,
)
from .capacity import CAPACITY_HORIZON, ledger_for_project, pooled_employees
from .dependencies import DependencyGraph
from .ordering import sort_issues
from .repair import ScheduleRepairer
from .sprint_calendar import build_windows, current_sprint_number, sprint_for_date

# Número máximo de sprints avaliadas a partir da sprint alvo
SCAN_HORIZON = 26


class SprintPlanner:
    """Serviço responsável pelo planejamento das issues nas sprints"""

    def __init__(
        self,
        issues: Iterable[Issue],
        capacities: Iterable[SprintCapacity],
        project_start: date,
        today: date,
        project: Optional[str] = None,
        overflow_owner: Optional[str] = None,
        closed_statuses: Optional[Iterable[str]] = None,
    ):
        """
        Inicializa o planejador

        Args:
            issues: Issues abertas do projeto
            capacities: Registros de capacity (uma cópia própria é mantida)
            project_start: Data de início da sprint 1 do projeto
            today: Data atual
            project: Nome do projeto planejado
            overflow_owner: Funcionário que absorve o trabalho excedente
            closed_statuses: Status de issues que não restringem o planejamento
        """
        self.issues: List[Issue] = list(issues)
        seen = set()
        for issue in self.issues:
            if issue.key in seen:
                raise ValueError(f"Issue duplicada na entrada: {issue.key}")
            seen.add(issue.key)

        self.project_start = project_start
        self.today = today
        self.project = project
        self.pooled = pooled_employees(overflow_owner)

        # Cada execução trabalha sobre sua própria cópia dos registros
        self.capacities = [c.model_copy() for c in capacities]

        self.graph = DependencyGraph.build(self.issues, closed_statuses)
        self.current_sprint = current_sprint_number(project_start, today)
        self.windows = build_windows(project_start, CAPACITY_HORIZON)

    def plan(self) -> PlanningResult:
        """
        Planeja todas as issues, uma por vez, na ordem de prioridade

        Returns:
            PlanningResult: Planejamento inicial (antes do reparo)
        """
        logger.info(
            f"Iniciando planejamento do projeto {self.project or '-'} "
            f"(sprint atual: {self.current_sprint}, issues: {len(self.issues)})"
        )

        ledger = ledger_for_project(self.capacities, self.project, self.pooled)
        result = PlanningResult(
            sprint_capacity=self.capacities,
            ledger=ledger,
            windows=self.windows,
            current_sprint=self.current_sprint,
            project=self.project,
        )

        for issue in sort_issues(self.issues, self.graph):
            placement = self._find_first_available_sprint(issue, result)
            result.commit(issue, placement)

            if placement.is_scheduled:
                logger.info(
                    f"Issue {issue.key} planejada na sprint {placement.label} "
                    f"para {issue.assignee} ({issue.hours:.1f}h)"
                )
            else:
                logger.warning(f"Issue {issue.key} não coube em nenhuma sprint, movida para o backlog")
                self._unschedule_successors(issue, result)

        logger.info(
            f"Planejamento concluído: {len(result.planned_issues) - len(result.unscheduled)} issues agendadas, "
            f"{len(result.unscheduled)} não agendadas"
        )
        return result

    def plan_and_repair(self) -> PlanningResult:
        """Planeja e executa uma passada de reparo sobre o resultado"""
        result = self.plan()
        ScheduleRepairer(result, self.graph).repair()
        return result

    def _target_sprint(self, issue: Issue, result: PlanningResult) -> int:
        """
        Calcula a sprint a partir da qual a issue será avaliada

        Args:
            issue: Issue a ser planejada
            result: Planejamento em construção

        Returns:
            int: Número da sprint alvo
        """
        if issue.due_date:
            target = sprint_for_date(issue.due_date, self.project_start, CAPACITY_HORIZON)
        else:
            target = self.current_sprint

        # Nunca planeja em sprints que já passaram
        target = max(target, self.current_sprint)

        for predecessor_key in self.graph.predecessors_of(issue.key):
            predecessor = result.get(predecessor_key)
            if predecessor and predecessor.placement.is_scheduled:
                target = max(target, predecessor.placement.number + 1)

        return target

    def _find_first_available_sprint(self, issue: Issue, result: PlanningResult) -> SprintPlacement:
        """
        Procura a primeira sprint viável para a issue

        Args:
            issue: Issue a ser planejada
            result: Planejamento em construção

        Returns:
            SprintPlacement: Sprint encontrada ou não agendada
        """
        start = self._target_sprint(issue, result)
        last = min(start + SCAN_HORIZON - 1, CAPACITY_HORIZON)

        for sprint_number in range(start, last + 1):
            can_fit, reason = self._check_sprint(issue, sprint_number, result)
            if can_fit:
                return SprintPlacement.scheduled(sprint_number)
            logger.debug(f"Issue {issue.key} não cabe na sprint {sprint_number}: {reason}")

        return SprintPlacement.unscheduled()

    def _check_sprint(self, issue: Issue, sprint_number: int, result: PlanningResult) -> Tuple[bool, str]:
        """
        Verifica precedência e capacity de uma issue numa sprint

        Args:
            issue: Issue a ser planejada
            sprint_number: Sprint avaliada
            result: Planejamento em construção

        Returns:
            Tuple[bool, str]: Se a issue cabe e o motivo
        """
        candidate = SprintPlacement.scheduled(sprint_number)

        for predecessor_key in self.graph.predecessors_of(issue.key):
            predecessor = result.get(predecessor_key)
            if predecessor and not predecessor.placement.is_before(candidate):
                return False, f"predecessora {predecessor_key} está na sprint {predecessor.sprint}"

        for successor_key in self.graph.successors_of(issue.key):
            successor = result.get(successor_key)
            if successor and not candidate.is_before(successor.placement):
                return False, f"sucessora {successor_key} está na sprint {successor.sprint}"

        if not result.ledger.can_fit(issue.assignee, sprint_number, issue.hours):
            return False, (
                f"capacity insuficiente para {issue.assignee} "
                f"(individual: {result.ledger.remaining(issue.assignee, sprint_number):.1f}h, "
                f"time: {result.ledger.pool_remaining(sprint_number):.1f}h, "
                f"necessário: {issue.hours:.1f}h)"
            )

        return True, "ok"

    def _unschedule_successors(self, issue: Issue, result: PlanningResult) -> None:
        """Sucessoras já agendadas (diretas ou não) não podem ficar antes de uma predecessora sem sprint"""
        for successor_key in sorted(self.graph.all_successors(issue.key)):
            successor: Optional[PlannedIssue] = result.get(successor_key)
            if successor and successor.placement.is_scheduled:
                logger.info(f"Sucessora {successor_key} de {issue.key} movida para o backlog")
                result.move(successor, SprintPlacement.unscheduled())
