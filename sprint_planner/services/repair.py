from typing import Dict, Optional, Set
from loguru import logger

from ..models.entities import PlannedIssue, PlanningResult, SprintPlacement
from .capacity import CAPACITY_HORIZON
from .dependencies import DependencyGraph
from .sprint_calendar import first_sprint_starting_on_or_after


class ScheduleRepairer:
    """
    Valida o planejamento e corrige violações de due date e precedência

    Cada correção move a issue de sprint e propaga o movimento para as
    predecessoras (mais cedo) e sucessoras (mais tarde). Uma issue movida
    não é movida de novo na mesma execução, o que garante o término mesmo
    com ciclos no grafo. Profundidade e número total de movimentos também
    são limitados.
    """

    def __init__(
        self,
        result: PlanningResult,
        graph: DependencyGraph,
        max_depth: int = 50,
        max_moves: Optional[int] = None,
    ):
        """
        Inicializa o reparo

        Args:
            result: Planejamento a ser corrigido (alterado no lugar)
            graph: Grafo de dependências usado no planejamento
            max_depth: Profundidade máxima da propagação
            max_moves: Número máximo de movimentos (padrão: 4x o número de issues)
        """
        self.result = result
        self.graph = graph
        self.max_depth = max_depth
        self.max_moves = max_moves if max_moves is not None else max(1, 4 * len(result.planned_issues))
        self.processed: Set[str] = set()
        self.moves = 0

    def repair(self) -> bool:
        """
        Executa uma passada de validação e correção

        Returns:
            bool: True se alguma issue foi movida
        """
        self.processed = set()
        self.moves = 0

        for planned in list(self.result.planned_issues):
            self._check_due_date(planned)
            self._check_predecessors(planned)
            self._check_successors(planned)

        if self.moves:
            logger.info(f"Reparo concluído: {self.moves} issues movidas")
        else:
            logger.info("Reparo concluído: nenhuma violação encontrada")
        return self.moves > 0

    def _after(self, sprint_number: int) -> SprintPlacement:
        """Sprint seguinte, ou backlog se passar do horizonte"""
        if sprint_number + 1 > CAPACITY_HORIZON:
            return SprintPlacement.unscheduled()
        return SprintPlacement.scheduled(sprint_number + 1)

    def _due_date_sprint(self, planned: PlannedIssue) -> int:
        """Primeira sprint que começa na due date ou depois, sem passar da cadeia de predecessoras"""
        project_start = self.result.windows[1].start
        target = first_sprint_starting_on_or_after(planned.issue.due_date, project_start, len(self.result.windows))
        return max(target, self._earliest_sprint(planned.key, set(), {}))

    def _earliest_sprint(self, key: str, visiting: Set[str], known: Dict[str, int]) -> int:
        """
        Sprint mais cedo que a issue pode ocupar sem ficar antes das predecessoras

        Predecessoras já movidas neste reparo ficam onde estão; as demais
        podem ser antecipadas, mas nunca para antes da sprint atual.
        """
        if key in known:
            return known[key]
        visiting = visiting | {key}
        earliest = self.result.current_sprint
        for predecessor_key in self.graph.predecessors_of(key):
            predecessor = self.result.get(predecessor_key)
            if predecessor is None or not predecessor.placement.is_scheduled:
                continue
            if predecessor_key in self.processed or predecessor_key in visiting:
                earliest = max(earliest, predecessor.placement.number + 1)
            else:
                earliest = max(earliest, self._earliest_sprint(predecessor_key, visiting, known) + 1)
        known[key] = earliest
        return earliest

    def _check_due_date(self, planned: PlannedIssue) -> None:
        due_date = planned.issue.due_date
        if not due_date or not planned.placement.is_scheduled:
            return

        window = self.result.windows.get(planned.placement.number)
        if window is None or due_date >= window.start:
            return

        target = self._due_date_sprint(planned)
        if target < planned.placement.number:
            logger.info(
                f"Erro: issue {planned.key} tem due date ({due_date}) antes da sprint "
                f"{planned.sprint} ({window.start}), movendo para a sprint {target}"
            )
            self._move(planned, SprintPlacement.scheduled(target), 0)

    def _check_predecessors(self, planned: PlannedIssue) -> None:
        for predecessor_key in self.graph.predecessors_of(planned.key):
            predecessor = self.result.get(predecessor_key)
            if predecessor is None or predecessor.placement.is_before(planned.placement):
                continue
            if not planned.placement.is_scheduled:
                continue

            if not predecessor.placement.is_scheduled:
                target = SprintPlacement.unscheduled()
            else:
                target = self._after(predecessor.placement.number)

            logger.info(
                f"Erro: predecessora {predecessor_key} está na sprint {predecessor.sprint}, "
                f"mas {planned.key} está na sprint {planned.sprint}"
            )
            self._move(planned, target, 0)

    def _check_successors(self, planned: PlannedIssue) -> None:
        for successor_key in self.graph.successors_of(planned.key):
            successor = self.result.get(successor_key)
            if successor is None or planned.placement.is_before(successor.placement):
                continue
            if not successor.placement.is_scheduled:
                continue

            if not planned.placement.is_scheduled:
                target = SprintPlacement.unscheduled()
            else:
                target = self._after(planned.placement.number)

            logger.info(
                f"Erro: sucessora {successor_key} está na sprint {successor.sprint}, "
                f"mas {planned.key} está na sprint {planned.sprint}"
            )
            self._move(successor, target, 0)

    def _move(self, planned: PlannedIssue, target: SprintPlacement, depth: int) -> bool:
        """
        Move uma issue e propaga para predecessoras e sucessoras

        Args:
            planned: Issue a ser movida
            target: Nova sprint
            depth: Profundidade atual da propagação

        Returns:
            bool: True se a issue foi movida
        """
        if planned.key in self.processed:
            logger.debug(f"Issue {planned.key} já foi movida neste reparo, ignorando")
            return False
        if planned.placement == target:
            return False
        if depth > self.max_depth or self.moves >= self.max_moves:
            logger.warning(
                f"Limite de propagação atingido ao mover {planned.key} "
                f"(profundidade {depth}, movimentos {self.moves})"
            )
            return False

        self.processed.add(planned.key)
        old_label = planned.sprint
        self.result.move(planned, target)
        self.moves += 1
        logger.info(f"Issue {planned.key} movida da sprint {old_label} para a sprint {target.label}")

        self._propagate(planned, depth + 1)
        return True

    def _propagate(self, planned: PlannedIssue, depth: int) -> None:
        placement = planned.placement

        for predecessor_key in self.graph.predecessors_of(planned.key):
            predecessor = self.result.get(predecessor_key)
            if predecessor is None or predecessor.key in self.processed:
                continue
            if predecessor.placement.is_before(placement):
                continue
            # Predecessora no backlog não é puxada para uma sprint sem capacity
            if not placement.is_scheduled or not predecessor.placement.is_scheduled:
                continue

            earlier = placement.number - 1
            if earlier < self.result.current_sprint:
                logger.warning(
                    f"Predecessora {predecessor_key} não pode ser movida para antes da sprint {placement.label}"
                )
                continue
            logger.info(f"Predecessora {predecessor_key} será movida para a sprint {earlier}")
            self._move(predecessor, SprintPlacement.scheduled(earlier), depth)

        for successor_key in self.graph.successors_of(planned.key):
            successor = self.result.get(successor_key)
            if successor is None or successor.key in self.processed:
                continue
            if placement.is_before(successor.placement):
                continue
            if not successor.placement.is_scheduled:
                continue

            if placement.is_scheduled:
                target = self._after(placement.number)
            else:
                target = SprintPlacement.unscheduled()
            logger.info(f"Sucessora {successor_key} será movida para a sprint {target.label}")
            self._move(successor, target, depth)
