import re
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple, Union
import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from loguru import logger

from ..models.config import CapacityRow, InvalidConfigurationError, ProjectConfig
from ..models.entities import PlanningResult, UNASSIGNED

PROJECTS_SHEET = "Projects"
EMPLOYEES_SHEET = "Employees"

PLANNING_HEADERS = ["Sprint", "Project", "Employee", "Capacity", "Used", "Available"]
ISSUES_HEADERS = ["Key", "Project", "Title", "Sprint", "Employee", "Hours", "Status"]

# Limite do Excel para nomes de planilha
MAX_SHEET_TITLE = 31


def safe_sheet_title(prefix: str, project: str) -> str:
    """Nome de planilha sem caracteres especiais, mantendo os espaços"""
    safe_project = re.sub(r"[^a-zA-Z0-9\s]", "", project)
    return f"{prefix} {safe_project}"[:MAX_SHEET_TITLE]


class WorkbookStore:
    """Leitura da configuração e escrita do planejamento numa planilha Excel"""

    def __init__(self, path: Union[str, Path], pooled: Optional[Set[str]] = None):
        """
        Inicializa o acesso à planilha

        Args:
            path: Caminho do arquivo .xlsx
            pooled: Pseudo-funcionários, reportados com capacity zero
        """
        self.path = Path(path)
        self.pooled = set(pooled) if pooled else {UNASSIGNED}
        self.header_fill = PatternFill(start_color="FF6B00", end_color="FF6B00", fill_type="solid")

    def _load(self) -> openpyxl.Workbook:
        if not self.path.exists():
            raise InvalidConfigurationError(f"Planilha não encontrada: {self.path}")
        return openpyxl.load_workbook(self.path, data_only=True)

    @staticmethod
    def _read_sheet(
        wb: openpyxl.Workbook,
        sheet_name: str,
        required: List[str],
    ) -> Tuple[Dict[str, int], List[tuple]]:
        """
        Lê o cabeçalho e as linhas de uma planilha

        Args:
            wb: Workbook aberto
            sheet_name: Nome da planilha
            required: Colunas obrigatórias

        Returns:
            Tuple[Dict[str, int], List[tuple]]: Índice das colunas (em minúsculas) e linhas de dados
        """
        if sheet_name not in wb.sheetnames:
            raise InvalidConfigurationError(f"Planilha {sheet_name} não encontrada")

        rows = list(wb[sheet_name].iter_rows(values_only=True))
        if not rows:
            raise InvalidConfigurationError(f"Planilha {sheet_name} sem cabeçalho")

        columns = {
            str(header).strip().lower(): index
            for index, header in enumerate(rows[0])
            if header is not None
        }
        missing = [name for name in required if name.lower() not in columns]
        if missing:
            raise InvalidConfigurationError(
                f"Colunas obrigatórias ausentes na planilha {sheet_name}: {', '.join(missing)}"
            )
        return columns, rows[1:]

    @staticmethod
    def _value(row: tuple, columns: Dict[str, int], name: str):
        index = columns.get(name.lower())
        if index is None or index >= len(row):
            return None
        return row[index]

    def read_project_configs(self) -> List[ProjectConfig]:
        """
        Lê a configuração dos projetos

        Returns:
            List[ProjectConfig]: Projetos com códigos Jira, filtro JQL e data de início
        """
        wb = self._load()
        columns, rows = self._read_sheet(wb, PROJECTS_SHEET, ["Project", "Codes"])

        projects = []
        for row in rows:
            name = self._value(row, columns, "Project")
            if not name or not str(name).strip():
                continue
            projects.append(ProjectConfig(
                project=str(name).strip(),
                codes=self._value(row, columns, "Codes"),
                jql_filter=str(self._value(row, columns, "JQL filter") or "").strip(),
                worklog_jql=str(self._value(row, columns, "Worklog JQL") or "").strip(),
                sprint_start_date=self._value(row, columns, "Sprint date"),
            ))

        logger.info(f"Lidos {len(projects)} projetos da planilha {self.path.name}")
        return projects

    def read_capacity_rows(self) -> List[CapacityRow]:
        """
        Lê as horas efetivas e projetos dos funcionários

        Returns:
            List[CapacityRow]: Uma linha por funcionário
        """
        wb = self._load()
        columns, rows = self._read_sheet(wb, EMPLOYEES_SHEET, ["Name", "Effective hours", "Project"])

        capacity_rows = []
        for row in rows:
            name = self._value(row, columns, "Name")
            if not name or not str(name).strip():
                continue
            capacity_rows.append(CapacityRow(
                employee=str(name).strip(),
                effective_hours=self._value(row, columns, "Effective hours"),
                projects=self._value(row, columns, "Project"),
                sprint_start=self._value(row, columns, "Sprint date"),
            ))

        logger.info(f"Lidos {len(capacity_rows)} funcionários da planilha {self.path.name}")
        return capacity_rows

    def _planning_rows(self, project: str, result: PlanningResult) -> List[list]:
        """Linhas de capacity das sprints com issues agendadas"""
        sprints = result.scheduled_sprints
        seen = set()
        rows = []
        for capacity in result.sprint_capacity:
            if capacity.sprint not in sprints:
                continue
            if capacity.project and capacity.project.lower() != project.lower():
                continue
            key = (capacity.employee, capacity.sprint)
            if key in seen:
                continue
            seen.add(key)

            if capacity.employee in self.pooled:
                total = used = available = 0.0
            else:
                total = capacity.capacity
                used = result.used_hours(capacity.employee, capacity.sprint)
                available = capacity.available_capacity - used
            rows.append([
                int(capacity.sprint),
                capacity.project or project,
                capacity.employee,
                round(total, 2),
                round(used, 2),
                round(available, 2),
            ])

        rows.sort(key=lambda r: (r[0], r[2]))
        return rows

    def _issue_rows(self, project: str, result: PlanningResult) -> List[list]:
        rows = []
        for planned in result.planned_issues:
            rows.append([
                planned.key,
                planned.issue.project_key or project,
                planned.issue.summary,
                planned.sprint,
                planned.assignee,
                round(planned.hours, 2),
                planned.issue.status or "",
            ])
        rows.sort(key=lambda r: (int(r[3]), r[0]))
        return rows

    def _write_sheet(self, wb: openpyxl.Workbook, title: str, headers: List[str], rows: List[list]) -> Worksheet:
        if title in wb.sheetnames:
            del wb[title]
        ws = wb.create_sheet(title)

        for col_num, header in enumerate(headers, 1):
            cell = ws.cell(row=1, column=col_num, value=header)
            cell.font = Font(bold=True, color="FFFFFF")
            cell.fill = self.header_fill
            cell.alignment = Alignment(horizontal="center")
            ws.column_dimensions[get_column_letter(col_num)].width = 18

        for row_num, values in enumerate(rows, 2):
            for col_num, value in enumerate(values, 1):
                ws.cell(row=row_num, column=col_num, value=value)
        return ws

    def write_planning(self, project: str, result: PlanningResult) -> None:
        """
        Grava as planilhas de planejamento e de issues de um projeto

        Planilhas existentes com o mesmo nome são substituídas.

        Args:
            project: Nome do projeto
            result: Resultado do planejamento
        """
        if self.path.exists():
            wb = openpyxl.load_workbook(self.path)
        else:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            wb = openpyxl.Workbook()
            wb.remove(wb.active)

        self._write_sheet(wb, safe_sheet_title("Planning", project), PLANNING_HEADERS, self._planning_rows(project, result))
        self._write_sheet(wb, safe_sheet_title("Issues", project), ISSUES_HEADERS, self._issue_rows(project, result))
        wb.save(self.path)

        logger.info(f"Planejamento do projeto {project} gravado em {self.path}")
