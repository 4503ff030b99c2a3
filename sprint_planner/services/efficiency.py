from datetime import date
from typing import Dict, Iterable, List
from loguru import logger

from ..models.entities import EmployeeEfficiency, Issue, WorkLog

UNCATEGORIZED = "Sem categoria"


def calculate_efficiency(
    issues: Iterable[Issue],
    worklogs: Iterable[WorkLog],
    start_date: date,
    end_date: date,
) -> List[EmployeeEfficiency]:
    """
    Calcula a eficiência de cada funcionário com horas registradas

    Eficiência = horas registradas no período / horas estimadas das issues
    atribuídas ao funcionário x 100. Funcionários sem estimativa ficam com 0.

    Args:
        issues: Issues do projeto
        worklogs: Registros de horas já obtidos
        start_date: Início do período (inclusivo)
        end_date: Fim do período (inclusivo)

    Returns:
        List[EmployeeEfficiency]: Uma linha por funcionário, em ordem alfabética
    """
    logged: Dict[str, float] = {}
    for worklog in worklogs:
        hours = logged.setdefault(worklog.author, 0.0)
        if start_date <= worklog.started <= end_date:
            logged[worklog.author] = hours + worklog.hours

    assigned: Dict[str, List[Issue]] = {}
    for issue in issues:
        assigned.setdefault(issue.assignee, []).append(issue)

    rows = []
    for employee in sorted(logged):
        employee_issues = assigned.get(employee, [])
        estimated = sum(issue.hours for issue in employee_issues)
        efficiency = logged[employee] / estimated * 100 if estimated > 0 else 0.0
        rows.append(EmployeeEfficiency(
            employee=employee,
            estimated_hours=estimated,
            logged_hours=logged[employee],
            efficiency=efficiency,
            issue_keys=[issue.key for issue in employee_issues],
        ))

    logger.info(f"Eficiência calculada para {len(rows)} funcionários ({start_date} a {end_date})")
    return rows


def worklog_hours_by_category(worklogs: Iterable[WorkLog]) -> Dict[str, Dict[str, float]]:
    """Total de horas registradas por funcionário e categoria"""
    totals: Dict[str, Dict[str, float]] = {}
    for worklog in worklogs:
        category = worklog.category or UNCATEGORIZED
        employee_totals = totals.setdefault(worklog.author, {})
        employee_totals[category] = employee_totals.get(category, 0.0) + worklog.hours
    return totals


def categories_of(totals: Dict[str, Dict[str, float]]) -> List[str]:
    """Categorias presentes no resumo, em ordem alfabética"""
    return sorted({category for employee_totals in totals.values() for category in employee_totals})
