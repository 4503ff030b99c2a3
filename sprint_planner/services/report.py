import html
from pathlib import Path
from typing import Dict, List, Optional
from xml.sax.saxutils import escape
from loguru import logger
import markdown
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, TableStyle, LongTable
from reportlab.lib.enums import TA_LEFT, TA_CENTER

from ..models.entities import EmployeeEfficiency, PlanningResult, PlannedIssue, WorkLog
from .efficiency import categories_of, worklog_hours_by_category

NOT_PLANNED = "Não planejado"


def markdown_cell(text: str) -> str:
    """Texto livre (títulos, nomes) seguro dentro de uma célula de tabela Markdown"""
    return html.escape(text, quote=False).replace("|", "\\|")


HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="pt-BR">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: Helvetica, Arial, sans-serif; margin: 2em; }}
h1, h2 {{ color: #FF6B00; }}
table {{ border-collapse: collapse; margin-bottom: 1.5em; }}
th {{ background: #FF6B00; color: white; }}
th, td {{ border: 1px solid #333; padding: 4px 8px; }}
.planned {{ color: #1B5E20; }}
.unplanned {{ color: #B71C1C; font-weight: bold; }}
</style>
</head>
<body>
{body}
</body>
</html>
"""


class ReportGenerator:
    """Serviço responsável pela geração de relatórios do planejamento"""

    def __init__(
        self,
        result: PlanningResult,
        output_dir: str,
        project_name: str,
        efficiency: Optional[List[EmployeeEfficiency]] = None,
        worklogs: Optional[List[WorkLog]] = None,
    ):
        """
        Inicializa o gerador de relatórios

        Args:
            result: Resultado do planejamento
            output_dir: Diretório de saída dos relatórios
            project_name: Nome do projeto
            efficiency: Eficiência por funcionário (opcional)
            worklogs: Horas registradas no período (opcional)
        """
        self.result = result
        self.output_dir = Path(output_dir)
        self.project_name = project_name
        self.efficiency = efficiency or []
        self.worklog_totals = worklog_hours_by_category(worklogs or [])
        self.file_stem = f"planejamento_{project_name.replace(' ', '_')}"

        # Cria o diretório de saída se não existir
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.styles = getSampleStyleSheet()
        self._setup_styles()

    def _setup_styles(self):
        """Configura estilos personalizados para o relatório"""
        self.styles.add(ParagraphStyle(
            name='CustomTitle',
            parent=self.styles['Title'],
            fontSize=16,
            spaceAfter=30,
            textColor=colors.HexColor('#FF6B00'),  # Laranja
            alignment=TA_CENTER
        ))

        self.styles.add(ParagraphStyle(
            name='CustomHeading1',
            parent=self.styles['Heading1'],
            fontSize=14,
            spaceAfter=12,
            textColor=colors.HexColor('#FF6B00'),
            alignment=TA_LEFT
        ))

        self.styles.add(ParagraphStyle(
            name='TableCell',
            parent=self.styles['Normal'],
            fontSize=9,
            leading=11,
            alignment=TA_LEFT
        ))

        self.styles.add(ParagraphStyle(
            name='TableHeader',
            parent=self.styles['Normal'],
            fontSize=10,
            leading=12,
            alignment=TA_LEFT,
            fontName='Helvetica-Bold',
            textColor=colors.white
        ))

    def _create_table_style(self, header_bg_color=colors.HexColor('#FF6B00')):
        """Cria um estilo padrão para as tabelas"""
        return TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), header_bg_color),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('LEFTPADDING', (0, 0), (-1, -1), 6),
            ('RIGHTPADDING', (0, 0), (-1, -1), 6),
            ('TOPPADDING', (0, 0), (-1, -1), 4),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#FFF5EB')]),
        ])

    def _issues_by_sprint(self) -> Dict[str, List[PlannedIssue]]:
        by_sprint: Dict[str, List[PlannedIssue]] = {}
        for sprint in self.result.scheduled_sprints:
            by_sprint[sprint] = self.result.issues_in_sprint(sprint)
        return by_sprint

    def _capacity_rows(self) -> List[List[str]]:
        """Capacity, uso e sobra por sprint e funcionário, segundo o ledger"""
        ledger = self.result.ledger
        rows = []
        for sprint in self.result.scheduled_sprints:
            number = int(sprint)
            employees = sorted({
                c.employee for c in self.result.sprint_capacity
                if c.sprint == sprint and not ledger.is_pooled(c.employee)
            })
            for employee in employees:
                available = ledger.available(employee, number)
                used = ledger.used(employee, number)
                rows.append([sprint, employee, f"{available:.1f}h", f"{used:.1f}h", f"{available - used:.1f}h"])
            sprint_total = sum(self.result.sprint_hours.get(sprint, {}).values())
            rows.append([sprint, "Time (sobra)", "-", f"{sprint_total:.1f}h", f"{ledger.pool_remaining(number):.1f}h"])
        return rows

    def _generate_markdown(self) -> str:
        """Gera o conteúdo do relatório em Markdown"""
        report = []
        unscheduled = self.result.unscheduled

        report.append(f"# Relatório de Planejamento - {markdown_cell(self.project_name)}")
        report.append("")

        # 1. Resumo
        report.append("## 1. Resumo")
        report.append("")
        report.append(f"- **Sprint atual:** {self.result.current_sprint}")
        report.append(f"- **Total de issues:** {len(self.result.planned_issues)}")
        report.append(f"- **Issues planejadas:** {len(self.result.planned_issues) - len(unscheduled)}")
        report.append(f"- **Issues não planejadas:** {len(unscheduled)}")
        report.append("")

        # 2. Issues por sprint
        report.append("## 2. Issues Planejadas")
        report.append("")
        for sprint, issues in self._issues_by_sprint().items():
            window = self.result.windows.get(int(sprint))
            period = f" ({window.start.strftime('%d/%m/%Y')} a {window.end.strftime('%d/%m/%Y')})" if window else ""
            report.append(f"### Sprint {sprint}{period}")
            report.append("")
            report.append("| Issue | Título | Responsável | Horas | Due Date |")
            report.append("|-------|--------|-------------|-------|----------|")
            for planned in issues:
                due = planned.issue.due_date.strftime('%d/%m/%Y') if planned.issue.due_date else '-'
                report.append(
                    f"| {planned.key} | {markdown_cell(planned.issue.summary)} | {markdown_cell(planned.assignee)} "
                    f"| {planned.hours:.1f}h | {due} |"
                )
            report.append("")

        # 3. Issues não planejadas
        if unscheduled:
            report.append("## 3. Issues Não Planejadas")
            report.append("")
            report.append("| Issue | Título | Responsável | Horas | Situação |")
            report.append("|-------|--------|-------------|-------|----------|")
            for planned in unscheduled:
                report.append(
                    f"| {planned.key} | {markdown_cell(planned.issue.summary)} | {markdown_cell(planned.assignee)} | "
                    f"{planned.hours:.1f}h | {NOT_PLANNED} |"
                )
            report.append("")

        # 4. Capacity
        report.append("## 4. Capacity por Sprint")
        report.append("")
        report.append("| Sprint | Funcionário | Capacity | Utilizada | Disponível |")
        report.append("|--------|-------------|----------|-----------|------------|")
        for row in self._capacity_rows():
            report.append("| " + " | ".join(markdown_cell(cell) for cell in row) + " |")
        report.append("")

        # 5. Eficiência
        if self.efficiency:
            report.append("## 5. Eficiência")
            report.append("")
            report.append("| Funcionário | Estimado | Registrado | Eficiência |")
            report.append("|-------------|----------|------------|------------|")
            for row in self._efficiency_rows():
                report.append("| " + " | ".join(markdown_cell(cell) for cell in row) + " |")
            report.append("")

        # 6. Horas registradas por categoria
        if self.worklog_totals:
            categories = categories_of(self.worklog_totals)
            report.append("## 6. Horas Registradas por Categoria")
            report.append("")
            report.append("| Funcionário | " + " | ".join(markdown_cell(c) for c in categories) + " | Total |")
            report.append("|" + "---|" * (len(categories) + 2))
            for row in self._worklog_rows(categories):
                report.append("| " + " | ".join(markdown_cell(cell) for cell in row) + " |")
            report.append("")

        return "\n".join(report)

    def _efficiency_rows(self) -> List[List[str]]:
        return [
            [
                row.employee,
                f"{row.estimated_hours:.1f}h",
                f"{row.logged_hours:.1f}h",
                f"{row.efficiency:.0f}%",
            ]
            for row in self.efficiency
        ]

    def _worklog_rows(self, categories: List[str]) -> List[List[str]]:
        """Horas por funcionário e categoria, com uma linha de totais no final"""
        rows = []
        category_totals = {category: 0.0 for category in categories}
        for employee in sorted(self.worklog_totals):
            employee_totals = self.worklog_totals[employee]
            row = [employee]
            for category in categories:
                hours = employee_totals.get(category, 0.0)
                category_totals[category] += hours
                row.append(f"{hours:.1f}h")
            row.append(f"{sum(employee_totals.values()):.1f}h")
            rows.append(row)
        rows.append(
            ["Total"]
            + [f"{category_totals[category]:.1f}h" for category in categories]
            + [f"{sum(category_totals.values()):.1f}h"]
        )
        return rows

    def _generate_html(self, markdown_content: str) -> str:
        """Converte o Markdown em HTML e destaca issues planejadas e não planejadas"""
        body = markdown.markdown(markdown_content, extensions=["tables"])
        body = body.replace(f"<td>{NOT_PLANNED}</td>", f'<td class="unplanned">{NOT_PLANNED}</td>')
        for planned in self.result.planned_issues:
            if planned.placement.is_scheduled:
                body = body.replace(f"<td>{planned.key}</td>", f'<td class="planned">{planned.key}</td>')
        return HTML_TEMPLATE.format(title=html.escape(f"Planejamento - {self.project_name}"), body=body)

    def _generate_pdf(self, pdf_path: Path) -> None:
        doc = SimpleDocTemplate(
            str(pdf_path),
            pagesize=A4,
            rightMargin=2*cm,
            leftMargin=2*cm,
            topMargin=2*cm,
            bottomMargin=2*cm
        )
        available_width = doc.width
        elements = []

        elements.append(Paragraph(f"Planejamento: {escape(self.project_name)}", self.styles['CustomTitle']))
        elements.append(Spacer(1, 12))

        header = [
            Paragraph('Sprint', self.styles['TableHeader']),
            Paragraph('Issue', self.styles['TableHeader']),
            Paragraph('Título', self.styles['TableHeader']),
            Paragraph('Responsável', self.styles['TableHeader']),
            Paragraph('Horas', self.styles['TableHeader']),
        ]

        elements.append(Paragraph("1. Issues Planejadas", self.styles['CustomHeading1']))
        issue_data = [header]
        for sprint, issues in self._issues_by_sprint().items():
            for planned in issues:
                issue_data.append([
                    sprint,
                    planned.key,
                    Paragraph(escape(planned.issue.summary), self.styles["TableCell"]),
                    Paragraph(escape(planned.assignee), self.styles["TableCell"]),
                    f"{planned.hours:.1f}h",
                ])
        for planned in self.result.unscheduled:
            issue_data.append([
                NOT_PLANNED,
                planned.key,
                Paragraph(escape(planned.issue.summary), self.styles["TableCell"]),
                Paragraph(escape(planned.assignee), self.styles["TableCell"]),
                f"{planned.hours:.1f}h",
            ])

        issue_table = LongTable(
            issue_data,
            colWidths=[
                available_width * 0.15,  # Sprint
                available_width * 0.15,  # Issue
                available_width * 0.4,   # Título
                available_width * 0.2,   # Responsável
                available_width * 0.1,   # Horas
            ],
            repeatRows=1
        )
        issue_table.setStyle(self._create_table_style())
        elements.append(issue_table)
        elements.append(Spacer(1, 12))

        elements.append(Paragraph("2. Capacity por Sprint", self.styles['CustomHeading1']))
        capacity_data = [[
            Paragraph('Sprint', self.styles['TableHeader']),
            Paragraph('Funcionário', self.styles['TableHeader']),
            Paragraph('Capacity', self.styles['TableHeader']),
            Paragraph('Utilizada', self.styles['TableHeader']),
            Paragraph('Disponível', self.styles['TableHeader']),
        ]]
        capacity_data.extend(self._capacity_rows())
        capacity_table = LongTable(
            capacity_data,
            colWidths=[available_width * 0.12, available_width * 0.4] + [available_width * 0.16] * 3,
            repeatRows=1
        )
        capacity_table.setStyle(self._create_table_style())
        elements.append(capacity_table)

        if self.efficiency:
            elements.append(Spacer(1, 12))
            elements.append(Paragraph("3. Eficiência", self.styles['CustomHeading1']))
            efficiency_data = [[
                Paragraph(title, self.styles['TableHeader'])
                for title in ('Funcionário', 'Estimado', 'Registrado', 'Eficiência')
            ]]
            efficiency_data.extend(self._efficiency_rows())
            efficiency_table = LongTable(
                efficiency_data,
                colWidths=[available_width * 0.4] + [available_width * 0.2] * 3,
                repeatRows=1
            )
            efficiency_table.setStyle(self._create_table_style())
            elements.append(efficiency_table)

        doc.build(elements)

    def generate(self) -> None:
        """Gera o relatório do planejamento em Markdown, HTML e PDF"""
        markdown_content = self._generate_markdown()
        markdown_path = self.output_dir / f"{self.file_stem}.md"
        markdown_path.write_text(markdown_content, encoding='utf-8')
        logger.info(f"Relatório Markdown gerado em {markdown_path}")

        html_path = self.output_dir / f"{self.file_stem}.html"
        html_path.write_text(self._generate_html(markdown_content), encoding='utf-8')
        logger.info(f"Dashboard HTML gerado em {html_path}")

        pdf_path = self.output_dir / f"{self.file_stem}.pdf"
        self._generate_pdf(pdf_path)
        logger.info(f"Relatório PDF gerado em {pdf_path}")
