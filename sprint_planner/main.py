import json
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo
import typer
from loguru import logger
from rich.console import Console

from sprint_planner.models.config import (
    InvalidConfigurationError,
    ProjectConfig,
    SetupConfig,
    parse_config_date,
)
from sprint_planner.models.entities import SprintCapacity
from sprint_planner.jira.client import JiraClient
from sprint_planner.sheets.workbook import WorkbookStore
from sprint_planner.services.capacity import build_sprint_capacities, pooled_employees
from sprint_planner.services.efficiency import calculate_efficiency
from sprint_planner.services.scheduler import SprintPlanner
from sprint_planner.services.sprint_calendar import window_for
from sprint_planner.services.report import ReportGenerator

app = typer.Typer(help="Planejador de Sprints - Jira")
console = Console()

def configurar_logger(output_dir: Path = Path("logs")):
    """Configura o sistema de logs"""
    output_dir.mkdir(exist_ok=True)

    logger.remove()  # Remove handlers padrão
    logger.add(
        output_dir / "planejador_{time}.log",
        rotation="1 day",
        retention="7 days",
        level="INFO",
        encoding='utf-8'
    )
    logger.add(lambda msg: console.print(msg, style="blue"), level="INFO")

def verificar_diretorios():
    """Verifica e cria diretórios necessários"""
    diretorios = ["logs", "output"]
    for dir_name in diretorios:
        Path(dir_name).mkdir(exist_ok=True)

def load_json_file(path: Path) -> dict:
    """
    Carrega um arquivo JSON

    Args:
        path: Caminho do arquivo

    Returns:
        dict: Conteúdo do arquivo
    """
    try:
        return json.loads(path.read_text(encoding='utf-8'))
    except (OSError, ValueError) as e:
        logger.error(f"Erro ao carregar arquivo {path}: {str(e)}")
        raise typer.Exit(1)

def data_de_referencia(today: Optional[str], timezone: str) -> date:
    """
    Data usada como "hoje" no planejamento

    Args:
        today: Data informada na linha de comando (opcional)
        timezone: Fuso horário da configuração

    Returns:
        date: Data de referência
    """
    if today:
        parsed = parse_config_date(today)
        if parsed is None:
            logger.error(f"Data inválida: {today}. Formato esperado: YYYY-MM-DD ou DD-MM-YYYY")
            raise typer.Exit(1)
        return parsed
    return datetime.now(ZoneInfo(timezone)).date()

def planejar_projeto(
    project_config: ProjectConfig,
    setup: SetupConfig,
    capacities: List[SprintCapacity],
    reference_date: date,
    jira_client: JiraClient,
    store: WorkbookStore,
) -> None:
    """
    Planeja um projeto e grava planilha e relatórios

    Args:
        project_config: Configuração do projeto
        setup: Configuração principal
        capacities: Registros de capacity de todos os projetos
        reference_date: Data de referência
        jira_client: Cliente do Jira
        store: Planilha de configuração e saída
    """
    name = project_config.project
    if not project_config.codes:
        raise InvalidConfigurationError(f"Projeto {name} sem códigos Jira")

    logger.info(f"Obtendo issues do projeto {name}...")
    issues = jira_client.get_project_issues(project_config, setup.page_size)

    project_start = project_config.sprint_start_date or setup.default_sprint_start
    planner = SprintPlanner(
        issues,
        capacities,
        project_start=project_start,
        today=reference_date,
        project=name,
        overflow_owner=setup.overflow_owner,
        closed_statuses=setup.closed_statuses,
    )
    result = planner.plan_and_repair()

    logger.info(f"Gravando planejamento do projeto {name}...")
    store.write_planning(name, result)

    worklogs = []
    efficiency = []
    period_start = window_for(result.current_sprint, project_start).start
    if setup.track_worklogs and period_start <= reference_date:
        # Horas registradas desde o início da sprint atual
        logger.info(f"Obtendo worklogs do projeto {name} de {period_start} a {reference_date}...")
        employees = {c.employee for c in capacities if c.project in (name, "")}
        worklogs = jira_client.get_worklogs(
            project_config, period_start, reference_date, employees=employees, page_size=setup.page_size
        )
        efficiency = calculate_efficiency(issues, worklogs, period_start, reference_date)

    logger.info("Gerando relatório...")
    ReportGenerator(result, setup.output_dir, name, efficiency=efficiency, worklogs=worklogs).generate()

@app.command()
def planejar(
    config_dir: Path = typer.Option(
        "config",
        help="Diretório com os arquivos de configuração",
        exists=True,
        dir_okay=True,
        file_okay=False
    ),
    today: Optional[str] = typer.Option(
        None,
        help="Data de referência (YYYY-MM-DD); padrão: hoje no fuso da configuração"
    ),
    project: Optional[str] = typer.Option(
        None,
        help="Planeja apenas o projeto informado"
    ),
):
    """Executa o planejamento das sprints"""
    try:
        # Configuração inicial
        verificar_diretorios()
        configurar_logger()

        logger.info("Iniciando execução do planejador de sprints")
        logger.info(f"Usando diretório de configuração: {config_dir}")

        # Carrega configurações
        logger.info("Carregando configurações...")
        setup = SetupConfig(**load_json_file(config_dir / "setup.json"))
        reference_date = data_de_referencia(today, setup.timezone)
        logger.info(f"Data de referência: {reference_date}")

        pooled = pooled_employees(setup.overflow_owner)
        store = WorkbookStore(setup.workbook_file, pooled)
        projects = store.read_project_configs()
        if project:
            projects = [p for p in projects if p.project.lower() == project.lower()]
        if not projects:
            logger.error("Nenhum projeto encontrado na planilha")
            raise typer.Exit(1)

        capacity_rows = store.read_capacity_rows()
        capacities = build_sprint_capacities(
            capacity_rows,
            {p.project: p.sprint_start_date for p in projects},
            reference_date,
            pooled,
        )

        logger.info("Conectando ao Jira...")
        jira_client = JiraClient(
            server=setup.jira.server,
            email=setup.jira.email,
            token=setup.jira.token
        )

        for project_config in projects:
            try:
                planejar_projeto(project_config, setup, capacities, reference_date, jira_client, store)
            except InvalidConfigurationError as e:
                logger.error(f"Configuração inválida no projeto {project_config.project}: {str(e)}")

        logger.info("Processo concluído com sucesso!")

    except typer.Exit:
        raise
    except Exception as e:
        logger.error(f"Erro durante execução: {str(e)}")
        raise typer.Exit(1)

if __name__ == "__main__":
    # Configura e executa a aplicação
    app()
