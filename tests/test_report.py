import pytest
from datetime import date
from reportlab.platypus import TableStyle
from sprint_planner.models.entities import UNASSIGNED, EmployeeEfficiency, WorkLog
from sprint_planner.services.report import NOT_PLANNED, ReportGenerator
from sprint_planner.services.scheduler import SprintPlanner
from tests.factories import PROJECT, PROJECT_START, make_capacities, make_issue

@pytest.fixture
def result():
    """Fixture para um planejamento com issues planejadas e não planejadas"""
    capacities = make_capacities({"Ann": 20, "Bob": 10, UNASSIGNED: 0})
    issues = [
        make_issue("ALP-1", hours=25, due_date=date(2025, 6, 5)),
        make_issue("ALP-2", hours=25, predecessors=["ALP-1"]),
        make_issue("ALP-3", hours=12, assignee="Bob"),
        make_issue("ALP-4", hours=80),
    ]
    return SprintPlanner(issues, capacities, PROJECT_START, PROJECT_START, project=PROJECT).plan_and_repair()

@pytest.fixture
def report(result, tmp_path):
    """Fixture para o gerador de relatórios"""
    return ReportGenerator(result, str(tmp_path / "output"), "Projeto Alpha")

def test_output_dir_is_created(report, tmp_path):
    """Testa a criação do diretório de saída"""
    assert (tmp_path / "output").is_dir()

def test_setup_styles(report):
    """Testa os estilos personalizados"""
    for name in ("CustomTitle", "CustomHeading1", "TableCell", "TableHeader"):
        assert name in report.styles

def test_create_table_style(report):
    """Testa o estilo padrão das tabelas"""
    assert isinstance(report._create_table_style(), TableStyle)

def test_generate_markdown(report):
    """Testa o conteúdo do relatório em Markdown"""
    content = report._generate_markdown()

    assert "# Relatório de Planejamento - Projeto Alpha" in content
    assert "### Sprint 1 (26/05/2025 a 08/06/2025)" in content
    assert "| ALP-1 | Issue ALP-1 | Ann | 25.0h | 05/06/2025 |" in content
    assert "### Sprint 2" in content
    assert "## 3. Issues Não Planejadas" in content
    assert f"| ALP-4 | Issue ALP-4 | Ann | 80.0h | {NOT_PLANNED} |" in content
    assert "| 1 | Ann | 40.0h | 25.0h | 15.0h |" in content
    assert "| 1 | Bob | 20.0h | 12.0h | 8.0h |" in content

def test_generate_markdown_without_unplanned(result, tmp_path):
    """Testa que a seção de não planejadas só aparece quando necessário"""
    for planned in list(result.unscheduled):
        result.planned_issues.remove(planned)
    content = ReportGenerator(result, str(tmp_path), "Alpha")._generate_markdown()

    assert NOT_PLANNED not in content

def test_generate_html(report):
    """Testa o dashboard HTML"""
    html = report._generate_html(report._generate_markdown())

    assert "<table>" in html
    assert f'<td class="unplanned">{NOT_PLANNED}</td>' in html
    assert '<td class="planned">ALP-1</td>' in html
    assert '<td class="planned">ALP-4</td>' not in html

def test_generate(report, tmp_path):
    """Testa a geração dos três formatos"""
    report.generate()

    output = tmp_path / "output"
    assert (output / "planejamento_Projeto_Alpha.md").exists()
    assert (output / "planejamento_Projeto_Alpha.html").exists()
    pdf = output / "planejamento_Projeto_Alpha.pdf"
    assert pdf.exists()
    assert pdf.read_bytes().startswith(b"%PDF")

def test_markup_in_summary_is_escaped(tmp_path):
    """Testa títulos com marcação, & e | nos três formatos"""
    capacities = make_capacities({"Ann": 20, UNASSIGNED: 0})
    issues = [make_issue("ALP-1").model_copy(update={"summary": "Fix <b> tag & a < b check | x"})]
    result = SprintPlanner(issues, capacities, PROJECT_START, PROJECT_START, project=PROJECT).plan_and_repair()
    report = ReportGenerator(result, str(tmp_path), "Alpha")

    report.generate()

    content = (tmp_path / "planejamento_Alpha.md").read_text(encoding="utf-8")
    assert "Fix &lt;b&gt; tag &amp; a &lt; b check \\| x" in content
    assert "<b> tag" not in report._generate_html(content)
    assert (tmp_path / "planejamento_Alpha.pdf").read_bytes().startswith(b"%PDF")

def test_efficiency_and_worklog_sections(result, tmp_path):
    """Testa as seções de eficiência e de horas por categoria"""
    efficiency = [
        EmployeeEfficiency(employee="Ann", estimated_hours=50, logged_hours=10, efficiency=20, issue_keys=["ALP-1"]),
    ]
    worklogs = [
        WorkLog(issue_key="ALP-1", author="Ann", time_spent_seconds=6 * 3600, started=date(2025, 5, 27), category="Desenvolvimento"),
        WorkLog(issue_key="ALP-1", author="Ann", time_spent_seconds=4 * 3600, started=date(2025, 5, 28)),
        WorkLog(issue_key="ALP-3", author="Bob", time_spent_seconds=2 * 3600, started=date(2025, 5, 28), category="Desenvolvimento"),
    ]
    report = ReportGenerator(result, str(tmp_path), "Alpha", efficiency=efficiency, worklogs=worklogs)

    content = report._generate_markdown()

    assert "## 5. Eficiência" in content
    assert "| Ann | 50.0h | 10.0h | 20% |" in content
    assert "## 6. Horas Registradas por Categoria" in content
    assert "| Funcionário | Desenvolvimento | Sem categoria | Total |" in content
    assert "| Ann | 6.0h | 4.0h | 10.0h |" in content
    assert "| Bob | 2.0h | 0.0h | 2.0h |" in content
    assert "| Total | 8.0h | 4.0h | 12.0h |" in content

    report.generate()
    assert (tmp_path / "planejamento_Alpha.pdf").read_bytes().startswith(b"%PDF")

def test_sections_without_worklogs(report):
    """Testa que as seções de horas só aparecem com dados"""
    content = report._generate_markdown()

    assert "## 5. Eficiência" not in content
    assert "## 6. Horas Registradas por Categoria" not in content
