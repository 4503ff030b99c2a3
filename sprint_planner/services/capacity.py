import math
from datetime import date
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
from loguru import logger

from ..models.config import CapacityRow
from ..models.entities import SprintCapacity, UNASSIGNED
from .sprint_calendar import WORKDAYS_PER_SPRINT, remaining_workdays, window_for

# Sprints geradas por funcionário; "100" fica reservado para issues não agendadas
CAPACITY_HORIZON = 99
EPSILON = 1e-9

LedgerKey = Tuple[str, int]


def pooled_employees(overflow_owner: Optional[str] = None) -> frozenset:
    """Pseudo-funcionários que usam a sobra de capacity do time"""
    names = {UNASSIGNED}
    if overflow_owner:
        names.add(overflow_owner)
    return frozenset(names)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _sprint_capacity_for(
    base_capacity: float,
    sprint_number: int,
    anchor: Optional[date],
    today: date,
) -> Tuple[float, Optional[date]]:
    """
    Calcula a capacity disponível de uma sprint

    Args:
        base_capacity: Capacity total da sprint (horas semanais x 2)
        sprint_number: Número da sprint
        anchor: Data de início da sprint 1 do projeto (None = sem datas)
        today: Data atual

    Returns:
        Tuple[float, Optional[date]]: Capacity disponível e início da janela
    """
    if anchor is None:
        return base_capacity, None

    window = window_for(sprint_number, anchor)
    if window.contains(today):
        remaining = remaining_workdays(today, window.end)
        return _round_half_up(base_capacity * remaining / WORKDAYS_PER_SPRINT), window.start
    if today > window.end:
        return 0, window.start
    return base_capacity, window.start


def build_sprint_capacities(
    rows: Iterable[CapacityRow],
    project_starts: Mapping[str, Optional[date]],
    today: date,
    pooled: Iterable[str] = (UNASSIGNED,),
    horizon: int = CAPACITY_HORIZON,
) -> List[SprintCapacity]:
    """
    Gera os registros de capacity por funcionário, sprint e projeto

    Args:
        rows: Linhas de capacity (horas efetivas semanais e projetos)
        project_starts: Data de início da sprint 1 por projeto
        today: Data atual
        pooled: Pseudo-funcionários sem capacity individual
        horizon: Número de sprints geradas

    Returns:
        List[SprintCapacity]: Um registro por (funcionário, sprint, projeto)
    """
    pooled_names = set(pooled)
    starts = {name.lower(): start for name, start in project_starts.items()}
    capacities: List[SprintCapacity] = []

    for row in rows:
        logger.info(
            f"Funcionário: {row.employee}, horas efetivas: {row.effective_hours}, "
            f"projetos: {', '.join(row.projects) or '-'}"
        )
        base_capacity = 0.0 if row.employee in pooled_names else row.effective_hours * 2

        for project in row.projects or [""]:
            anchor = row.sprint_start or starts.get(project.lower())
            for sprint_number in range(1, horizon + 1):
                available, start_date = _sprint_capacity_for(base_capacity, sprint_number, anchor, today)
                capacities.append(
                    SprintCapacity(
                        employee=row.employee,
                        sprint=str(sprint_number),
                        project=project,
                        capacity=base_capacity,
                        available_capacity=available,
                        start_date=start_date,
                    )
                )

    logger.info(f"Registros de capacity gerados: {len(capacities)}")
    return capacities


class CapacityLedger:
    """
    Livro de capacity restante por (funcionário, sprint)

    Imutável: consume, release e move retornam um novo ledger, o que permite
    auditar cada movimentação feita pelo planejamento e pelo reparo.
    """

    def __init__(
        self,
        available: Mapping[LedgerKey, float],
        pooled: Iterable[str] = (UNASSIGNED,),
        used: Optional[Mapping[LedgerKey, float]] = None,
        sprint_used: Optional[Mapping[int, float]] = None,
    ):
        self._available = MappingProxyType(dict(available))
        self._pooled = frozenset(pooled)
        self._used: Dict[LedgerKey, float] = dict(used or {})
        self._sprint_used: Dict[int, float] = dict(sprint_used or {})

        pool_base: Dict[int, float] = {}
        for (employee, sprint), hours in self._available.items():
            if employee not in self._pooled:
                pool_base[sprint] = pool_base.get(sprint, 0.0) + hours
        self._pool_base = MappingProxyType(pool_base)

    @classmethod
    def from_capacities(
        cls,
        capacities: Iterable[SprintCapacity],
        pooled: Iterable[str] = (UNASSIGNED,),
    ) -> "CapacityLedger":
        """Cria o ledger; registros repetidos para a mesma chave usam o primeiro"""
        available: Dict[LedgerKey, float] = {}
        for capacity in capacities:
            key = (capacity.employee, int(capacity.sprint))
            if key not in available:
                available[key] = capacity.available_capacity
        return cls(available, pooled)

    def _replace(self, used: Dict[LedgerKey, float], sprint_used: Dict[int, float]) -> "CapacityLedger":
        ledger = object.__new__(CapacityLedger)
        ledger._available = self._available
        ledger._pooled = self._pooled
        ledger._pool_base = self._pool_base
        ledger._used = used
        ledger._sprint_used = sprint_used
        return ledger

    def is_pooled(self, employee: str) -> bool:
        return employee in self._pooled

    def available(self, employee: str, sprint: int) -> float:
        return self._available.get((employee, sprint), 0.0)

    def used(self, employee: str, sprint: int) -> float:
        return self._used.get((employee, sprint), 0.0)

    def remaining(self, employee: str, sprint: int) -> float:
        """Capacity individual restante"""
        return self.available(employee, sprint) - self.used(employee, sprint)

    def pool_remaining(self, sprint: int) -> float:
        """Sobra da capacity do time na sprint, descontando todo o trabalho já alocado"""
        return self._pool_base.get(sprint, 0.0) - self._sprint_used.get(sprint, 0.0)

    def can_fit(self, employee: str, sprint: int, hours: float) -> bool:
        """
        Verifica se as horas cabem na sprint para o funcionário

        Pseudo-funcionários usam apenas a sobra do time; os demais precisam
        de capacity individual e de sobra no time.
        """
        if self.is_pooled(employee):
            return self.pool_remaining(sprint) + EPSILON >= hours
        available = min(self.remaining(employee, sprint), self.pool_remaining(sprint))
        return available + EPSILON >= hours

    def consume(self, employee: str, sprint: Optional[int], hours: float) -> "CapacityLedger":
        if sprint is None:
            return self
        used = dict(self._used)
        sprint_used = dict(self._sprint_used)
        used[(employee, sprint)] = used.get((employee, sprint), 0.0) + hours
        sprint_used[sprint] = sprint_used.get(sprint, 0.0) + hours
        return self._replace(used, sprint_used)

    def release(self, employee: str, sprint: Optional[int], hours: float) -> "CapacityLedger":
        return self.consume(employee, sprint, -hours)

    def move(
        self,
        employee: str,
        old_sprint: Optional[int],
        new_sprint: Optional[int],
        hours: float,
    ) -> "CapacityLedger":
        return self.release(employee, old_sprint, hours).consume(employee, new_sprint, hours)


def ledger_for_project(
    capacities: Iterable[SprintCapacity],
    project: Optional[str],
    pooled: Iterable[str] = (UNASSIGNED,),
) -> CapacityLedger:
    """
    Monta o ledger de um projeto

    Args:
        capacities: Todos os registros de capacity
        project: Projeto planejado (None = todos os registros)
        pooled: Pseudo-funcionários

    Returns:
        CapacityLedger: Ledger com os registros do projeto e os sem projeto
    """
    if project is None:
        selected = list(capacities)
    else:
        selected = [
            c for c in capacities
            if not c.project or c.project.lower() == project.lower()
        ]
    return CapacityLedger.from_capacities(selected, pooled)
