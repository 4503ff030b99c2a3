from datetime import date, datetime, timedelta
from typing import Dict, Union

from ..models.entities import SprintWindow

SPRINT_LENGTH_DAYS = 14
WORKDAYS_PER_SPRINT = 10


def _as_date(value: Union[date, datetime]) -> date:
    # Datas sempre comparadas à meia-noite
    if isinstance(value, datetime):
        return value.date()
    return value


def window_for(sprint_number: int, project_start: Union[date, datetime]) -> SprintWindow:
    """
    Calcula a janela de datas de uma sprint

    Args:
        sprint_number: Número da sprint (1 = primeira sprint do projeto)
        project_start: Data de início da sprint 1

    Returns:
        SprintWindow: Início e fim (fim = início + 13 dias)
    """
    start = _as_date(project_start) + timedelta(days=(sprint_number - 1) * SPRINT_LENGTH_DAYS)
    return SprintWindow(
        number=sprint_number,
        start=start,
        end=start + timedelta(days=SPRINT_LENGTH_DAYS - 1),
    )


def remaining_workdays(from_date: Union[date, datetime], to_date: Union[date, datetime]) -> int:
    """
    Conta os dias úteis (seg-sex) entre duas datas, ambas inclusivas

    Args:
        from_date: Data inicial
        to_date: Data final

    Returns:
        int: Número de dias úteis
    """
    working_days = 0
    current_date = _as_date(from_date)
    end_date = _as_date(to_date)
    while current_date <= end_date:
        # 5 = Sábado, 6 = Domingo
        if current_date.weekday() < 5:
            working_days += 1
        current_date += timedelta(days=1)
    return working_days


def current_sprint_number(project_start: Union[date, datetime], today: Union[date, datetime]) -> int:
    """Número da sprint em andamento; antes do início do projeto é a sprint 1"""
    days_since = (_as_date(today) - _as_date(project_start)).days
    return max(1, days_since // SPRINT_LENGTH_DAYS + 1)


def build_windows(project_start: Union[date, datetime], horizon: int) -> Dict[int, SprintWindow]:
    """Janelas das sprints 1..horizon"""
    return {n: window_for(n, project_start) for n in range(1, horizon + 1)}


def sprint_for_date(target: Union[date, datetime], project_start: Union[date, datetime], horizon: int) -> int:
    """
    Encontra a sprint correspondente a uma data

    A sprint cuja janela contém a data; senão a primeira sprint que começa
    na data ou depois dela; senão a última sprint do horizonte.

    Args:
        target: Data procurada (ex.: due date)
        project_start: Data de início da sprint 1
        horizon: Número de sprints consideradas

    Returns:
        int: Número da sprint
    """
    day = _as_date(target)
    start = _as_date(project_start)
    if day < start:
        return 1

    number = (day - start).days // SPRINT_LENGTH_DAYS + 1
    return min(number, horizon)


def first_sprint_starting_on_or_after(
    target: Union[date, datetime], project_start: Union[date, datetime], horizon: int
) -> int:
    """Primeira sprint cujo início é igual ou posterior à data (limitada ao horizonte)"""
    day = _as_date(target)
    start = _as_date(project_start)
    if day <= start:
        return 1

    days_since = (day - start).days
    number = -(-days_since // SPRINT_LENGTH_DAYS) + 1
    return min(number, horizon)
