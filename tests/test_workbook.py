import pytest
from datetime import date, datetime
import openpyxl
from sprint_planner.models.config import InvalidConfigurationError
from sprint_planner.models.entities import UNASSIGNED
from sprint_planner.services.scheduler import SprintPlanner
from sprint_planner.sheets.workbook import WorkbookStore, safe_sheet_title
from tests.factories import PROJECT, PROJECT_START, make_capacities, make_issue

@pytest.fixture
def workbook_path(tmp_path):
    """Fixture para uma planilha de configuração"""
    path = tmp_path / "planning.xlsx"
    wb = openpyxl.Workbook()
    projects = wb.active
    projects.title = "Projects"
    projects.append(["Project", "Codes", "JQL filter", "Sprint date"])
    projects.append(["Alpha", "ALP, ALP2", "status != Closed", "26-05-2025"])
    projects.append(["Beta", "BET", None, datetime(2025, 6, 9)])
    projects.append([None, None, None, None])

    employees = wb.create_sheet("Employees")
    employees.append(["name", "EFFECTIVE HOURS", "Project"])
    employees.append(["Ann", 20, "Alpha"])
    employees.append(["Bob", "7,5", "Alpha, Beta"])
    employees.append([UNASSIGNED, 0, "Alpha"])
    wb.save(path)
    return path

def test_read_project_configs(workbook_path):
    """Testa a leitura dos projetos"""
    projects = WorkbookStore(workbook_path).read_project_configs()

    assert [p.project for p in projects] == ["Alpha", "Beta"]
    assert projects[0].codes == ["ALP", "ALP2"]
    assert projects[0].jql_filter == "status != Closed"
    assert projects[0].sprint_start_date == date(2025, 5, 26)
    assert projects[1].jql_filter == ""
    assert projects[1].sprint_start_date == date(2025, 6, 9)

def test_read_capacity_rows_case_insensitive_headers(workbook_path):
    """Testa a leitura dos funcionários com cabeçalhos em qualquer caixa"""
    rows = WorkbookStore(workbook_path).read_capacity_rows()

    assert [r.employee for r in rows] == ["Ann", "Bob", UNASSIGNED]
    assert rows[1].effective_hours == 7.5
    assert rows[1].projects == ["Alpha", "Beta"]

def test_missing_sheet(tmp_path):
    """Testa a ausência de uma planilha obrigatória"""
    path = tmp_path / "empty.xlsx"
    wb = openpyxl.Workbook()
    wb.active.title = "Other"
    wb.save(path)

    with pytest.raises(InvalidConfigurationError):
        WorkbookStore(path).read_project_configs()

def test_missing_required_column(tmp_path):
    """Testa a ausência de uma coluna obrigatória"""
    path = tmp_path / "broken.xlsx"
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Employees"
    ws.append(["Name", "Project"])
    ws.append(["Ann", "Alpha"])
    wb.save(path)

    with pytest.raises(InvalidConfigurationError, match="Effective hours"):
        WorkbookStore(path).read_capacity_rows()

def test_missing_file(tmp_path):
    """Testa uma planilha inexistente"""
    with pytest.raises(InvalidConfigurationError):
        WorkbookStore(tmp_path / "missing.xlsx").read_project_configs()

def test_safe_sheet_title():
    """Testa o nome das planilhas de saída"""
    assert safe_sheet_title("Planning", "Alpha/Beta: 2") == "Planning AlphaBeta 2"
    assert len(safe_sheet_title("Issues", "x" * 50)) == 31

@pytest.fixture
def result():
    """Fixture para um planejamento do projeto Alpha"""
    capacities = make_capacities({"Ann": 20, UNASSIGNED: 0})
    issues = [
        make_issue("ALP-1", hours=30),
        make_issue("ALP-2", hours=5, assignee=None),
        make_issue("ALP-3", hours=100),
    ]
    return SprintPlanner(issues, capacities, PROJECT_START, PROJECT_START, project=PROJECT).plan_and_repair()

def test_write_planning(workbook_path, result):
    """Testa a gravação das planilhas de planejamento e issues"""
    store = WorkbookStore(workbook_path)
    store.write_planning(PROJECT, result)

    wb = openpyxl.load_workbook(workbook_path)
    assert {"Projects", "Employees", "Planning Alpha", "Issues Alpha"} <= set(wb.sheetnames)

    planning = list(wb["Planning Alpha"].iter_rows(values_only=True))
    assert planning[0] == ("Sprint", "Project", "Employee", "Capacity", "Used", "Available")
    assert (1, "Alpha", "Ann", 40, 30, 10) in planning[1:]
    assert (1, "Alpha", UNASSIGNED, 0, 0, 0) in planning[1:]

    issues = list(wb["Issues Alpha"].iter_rows(values_only=True))
    assert issues[0] == ("Key", "Project", "Title", "Sprint", "Employee", "Hours", "Status")
    assert [row[0] for row in issues[1:]] == ["ALP-1", "ALP-2", "ALP-3"]
    assert issues[3][3] == "100"

def test_write_planning_replaces_sheets(workbook_path, result):
    """Testa que gravar de novo substitui as planilhas do projeto"""
    store = WorkbookStore(workbook_path)
    store.write_planning(PROJECT, result)
    store.write_planning(PROJECT, result)

    wb = openpyxl.load_workbook(workbook_path)
    assert wb.sheetnames.count("Planning Alpha") == 1
    assert wb["Issues Alpha"].max_row == 4

def test_write_planning_creates_new_file(tmp_path, result):
    """Testa a gravação num arquivo novo"""
    path = tmp_path / "out" / "result.xlsx"
    WorkbookStore(path).write_planning(PROJECT, result)

    assert openpyxl.load_workbook(path).sheetnames == ["Planning Alpha", "Issues Alpha"]

def test_read_project_configs_with_worklog_jql(tmp_path):
    """Testa a coluna opcional com o JQL de worklogs"""
    path = tmp_path / "planning.xlsx"
    wb = openpyxl.Workbook()
    projects = wb.active
    projects.title = "Projects"
    projects.append(["Project", "Codes", "Worklog JQL"])
    projects.append(["Alpha", "ALP", ' project = ALP AND labels = "billable" '])
    projects.append(["Beta", "BET", None])
    wb.save(path)

    configs = WorkbookStore(path).read_project_configs()

    assert configs[0].worklog_jql == 'project = ALP AND labels = "billable"'
    assert configs[1].worklog_jql == ""
