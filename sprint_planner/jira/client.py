from datetime import date
from typing import Any, Dict, Iterable, List, Optional
from jira import JIRA
from loguru import logger

from ..models.config import ProjectConfig, parse_config_date
from ..models.entities import UNASSIGNED, Issue, IssueLink, LinkDirection, WorkLog

ISSUE_FIELDS = [
    "summary",
    "status",
    "assignee",
    "timeestimate",
    "priority",
    "project",
    "issuelinks",
    "duedate",
]

WORKLOG_FIELDS = ["summary", "project", "worklog"]

# Categoria dos registros de horas feitos nas issues do projeto
PROJECT_WORKLOG_CATEGORY = "Desenvolvimento"


class JiraClient:
    """Cliente para integração com o Jira"""

    def __init__(self, server: str, email: str, token: str):
        """
        Inicializa o cliente do Jira

        Args:
            server: URL do servidor Jira
            email: Email do usuário
            token: Token de API
        """
        self.server = server.rstrip("/")
        self.client = JIRA(basic_auth=(email, token), options={"server": self.server})

        logger.info(f"Cliente Jira inicializado para {self.server}")

    @staticmethod
    def build_jql(project_config: ProjectConfig) -> str:
        """
        Monta a query JQL de um projeto

        Args:
            project_config: Configuração do projeto

        Returns:
            str: Query com os códigos do projeto e o filtro extra, se houver
        """
        project_filter = " OR ".join(f"project = {code}" for code in project_config.codes)
        jql = f"({project_filter})"
        if project_config.jql_filter:
            jql += f" AND {project_config.jql_filter}"
        return jql

    def search_issues(
        self, jql: str, page_size: int = 100, fields: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Busca todas as issues de uma query, página por página

        Args:
            jql: Query JQL
            page_size: Número de issues por página
            fields: Campos retornados (padrão: campos do planejamento)

        Returns:
            List[Dict[str, Any]]: Issues no formato JSON do Jira
        """
        logger.info(f"JQL query: {jql}")
        all_issues: List[Dict[str, Any]] = []
        start_at = 0

        while True:
            logger.info(f"Obtendo issues a partir do índice {start_at}...")
            response = self.client.search_issues(
                jql,
                startAt=start_at,
                maxResults=page_size,
                fields=",".join(fields or ISSUE_FIELDS),
                json_result=True,
            )
            issues = response.get("issues", [])
            total = response.get("total", 0)
            all_issues.extend(issues)
            logger.info(f"{len(issues)} issues nesta página, total {total} segundo o Jira")

            if not issues or start_at + page_size >= total:
                break
            start_at += page_size

        logger.info(f"Obtidas {len(all_issues)} issues")
        return all_issues

    def get_project_issues(self, project_config: ProjectConfig, page_size: int = 100) -> List[Issue]:
        """Busca e converte as issues de um projeto"""
        raw_issues = self.search_issues(self.build_jql(project_config), page_size)
        return self.convert_to_entities(raw_issues)

    @staticmethod
    def _convert_links(raw_links: List[Dict[str, Any]]) -> List[IssueLink]:
        links = []
        for raw in raw_links or []:
            link_type = raw.get("type") or {}
            if raw.get("outwardIssue"):
                linked = raw["outwardIssue"]
                direction = LinkDirection.OUTWARD
            elif raw.get("inwardIssue"):
                linked = raw["inwardIssue"]
                direction = LinkDirection.INWARD
            else:
                continue

            status = ((linked.get("fields") or {}).get("status") or {}).get("name")
            links.append(IssueLink(
                type_name=link_type.get("name", ""),
                inward=link_type.get("inward", ""),
                outward=link_type.get("outward", ""),
                direction=direction,
                issue_key=linked.get("key", ""),
                issue_status=status,
            ))
        return links

    @staticmethod
    def _parse_due_date(value: Optional[str]) -> Optional[date]:
        # Jira retorna a due date como aaaa-mm-dd
        return parse_config_date(value)

    def convert_to_entities(self, raw_issues: List[Dict[str, Any]]) -> List[Issue]:
        """
        Converte as issues do Jira para entidades do sistema

        Args:
            raw_issues: Issues no formato JSON do Jira

        Returns:
            List[Issue]: Issues convertidas; entradas sem chave são ignoradas
        """
        issues = []
        for raw in raw_issues:
            key = raw.get("key")
            if not key:
                logger.warning(f"Issue sem chave ignorada: {raw.get('id', '-')}")
                continue

            fields = raw.get("fields") or {}
            issues.append(Issue(
                key=key,
                summary=fields.get("summary") or "",
                estimate_seconds=fields.get("timeestimate"),
                due_date=self._parse_due_date(fields.get("duedate")),
                status=(fields.get("status") or {}).get("name"),
                priority=(fields.get("priority") or {}).get("name"),
                assignee=(fields.get("assignee") or {}).get("displayName"),
                project_key=(fields.get("project") or {}).get("key"),
                links=self._convert_links(fields.get("issuelinks")),
            ))

        logger.info(f"Convertidas {len(issues)} issues")
        return issues

    @staticmethod
    def build_worklog_jql(project_config: ProjectConfig, start_date: date, end_date: date) -> str:
        """
        Monta a query JQL das issues com horas registradas no período

        Args:
            project_config: Configuração do projeto (usa o JQL de worklogs, se houver)
            start_date: Início do período
            end_date: Fim do período

        Returns:
            str: Query com o filtro de datas de worklog
        """
        if project_config.worklog_jql:
            jql = project_config.worklog_jql
        else:
            jql = "(" + " OR ".join(f"project = {code}" for code in project_config.codes) + ")"
        return (
            f'{jql} AND worklogDate >= "{start_date.isoformat()}" '
            f'AND worklogDate <= "{end_date.isoformat()}"'
        )

    def _issue_worklogs(self, raw_issue: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Worklogs de uma issue; busca todos quando o Jira retorna só parte deles"""
        embedded = (raw_issue.get("fields") or {}).get("worklog") or {}
        logs = embedded.get("worklogs") or []
        if embedded.get("total", len(logs)) > len(logs):
            logger.info(f"Issue {raw_issue['key']}: buscando todos os {embedded['total']} worklogs")
            logs = [worklog.raw for worklog in self.client.worklogs(raw_issue["key"])]
        return logs

    def convert_worklogs(
        self,
        issue_key: str,
        raw_logs: List[Dict[str, Any]],
        start_date: date,
        end_date: date,
        employees: Optional[Iterable[str]] = None,
    ) -> List[WorkLog]:
        """
        Converte os worklogs de uma issue, mantendo só os do período

        Args:
            issue_key: Chave da issue
            raw_logs: Worklogs no formato JSON do Jira
            start_date: Início do período (inclusivo)
            end_date: Fim do período (inclusivo)
            employees: Funcionários do projeto (None = todos)

        Returns:
            List[WorkLog]: Worklogs convertidos
        """
        allowed = set(employees) if employees is not None else None
        worklogs = []
        for raw in raw_logs:
            # Jira retorna o início como aaaa-mm-ddThh:mm:ss.000+0000
            started = parse_config_date(str(raw.get("started") or "")[:10])
            if started is None or not start_date <= started <= end_date:
                continue
            author = raw.get("author")
            if isinstance(author, dict):
                author = author.get("displayName")
            author = author or UNASSIGNED
            if allowed is not None and author not in allowed:
                continue
            worklogs.append(WorkLog(
                issue_key=issue_key,
                author=author,
                time_spent_seconds=raw.get("timeSpentSeconds") or 0,
                started=started,
                category=PROJECT_WORKLOG_CATEGORY,
                comment=raw.get("comment") if isinstance(raw.get("comment"), str) else None,
            ))
        return worklogs

    def get_worklogs(
        self,
        project_config: ProjectConfig,
        start_date: date,
        end_date: date,
        employees: Optional[Iterable[str]] = None,
        page_size: int = 100,
    ) -> List[WorkLog]:
        """
        Busca as horas registradas nas issues do projeto num período

        Args:
            project_config: Configuração do projeto
            start_date: Início do período (inclusivo)
            end_date: Fim do período (inclusivo)
            employees: Funcionários do projeto (None = todos)
            page_size: Número de issues por página

        Returns:
            List[WorkLog]: Worklogs do período
        """
        jql = self.build_worklog_jql(project_config, start_date, end_date)
        raw_issues = self.search_issues(jql, page_size, fields=WORKLOG_FIELDS)

        worklogs: List[WorkLog] = []
        for raw in raw_issues:
            key = raw.get("key")
            project_key = ((raw.get("fields") or {}).get("project") or {}).get("key")
            if not key or project_key not in project_config.codes:
                logger.info(f"Issue {key} não pertence ao projeto {project_config.project}, ignorando")
                continue
            worklogs.extend(self.convert_worklogs(key, self._issue_worklogs(raw), start_date, end_date, employees))

        logger.info(f"Obtidos {len(worklogs)} worklogs do projeto {project_config.project}")
        return worklogs
