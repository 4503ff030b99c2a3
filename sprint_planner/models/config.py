from datetime import date, datetime
from typing import List, Optional, Union
from pydantic import BaseModel, Field, field_validator


class InvalidConfigurationError(ValueError):
    """Configuração inválida (colunas ou campos obrigatórios ausentes)"""


def parse_config_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """
    Converte uma data de configuração, aceitando dd-mm-aaaa ou aaaa-mm-dd

    Args:
        value: Valor lido da configuração

    Returns:
        Optional[date]: Data convertida ou None se não for possível converter
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    for fmt in ("%d-%m-%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


class JiraConfig(BaseModel):
    """Configuração do Jira"""

    server: str
    email: str
    token: str


class ProjectConfig(BaseModel):
    """Configuração de um projeto"""

    project: str = Field(..., min_length=1)
    codes: List[str] = Field(default_factory=list)
    jql_filter: str = ""
    worklog_jql: str = ""
    sprint_start_date: Optional[date] = None

    @field_validator("codes", mode="before")
    @classmethod
    def split_codes(cls, v):
        """Aceita códigos separados por vírgula"""
        if v is None:
            return []
        if isinstance(v, str):
            return [c.strip() for c in v.split(",") if c.strip()]
        return v

    @field_validator("sprint_start_date", mode="before")
    @classmethod
    def validate_date(cls, v) -> Optional[date]:
        """Datas inválidas resultam em projeto sem data de início de sprint"""
        return parse_config_date(v)


class CapacityRow(BaseModel):
    """Linha de capacity de um funcionário"""

    employee: str = Field(..., min_length=1)
    effective_hours: float = 0.0
    projects: List[str] = Field(default_factory=list)
    sprint_start: Optional[date] = None

    @field_validator("effective_hours", mode="before")
    @classmethod
    def parse_hours(cls, v) -> float:
        """Horas ausentes ou inválidas viram zero"""
        if v is None:
            return 0.0
        try:
            return float(str(v).replace(",", "."))
        except ValueError:
            return 0.0

    @field_validator("projects", mode="before")
    @classmethod
    def split_projects(cls, v):
        """Aceita projetos separados por vírgula"""
        if v is None:
            return []
        if isinstance(v, str):
            return [p.strip() for p in v.split(",") if p.strip()]
        return v

    @field_validator("sprint_start", mode="before")
    @classmethod
    def validate_date(cls, v) -> Optional[date]:
        return parse_config_date(v)


class SetupConfig(BaseModel):
    """Configuração principal do sistema"""

    jira: JiraConfig
    workbook_file: str
    output_dir: str
    overflow_owner: Optional[str] = None
    closed_statuses: List[str] = Field(default_factory=lambda: ["Closed"])
    default_sprint_start: date = Field(default=date(2025, 5, 26))
    timezone: str = Field(default="Europe/Amsterdam")
    page_size: int = Field(default=100, gt=0)
    track_worklogs: bool = True

    @field_validator("default_sprint_start", mode="before")
    @classmethod
    def validate_date(cls, v) -> date:
        """Valida e converte a data padrão de início das sprints"""
        parsed = parse_config_date(v)
        if parsed is None:
            raise ValueError(f"Data inválida: {v}. Formato esperado: YYYY-MM-DD ou DD-MM-YYYY")
        return parsed
