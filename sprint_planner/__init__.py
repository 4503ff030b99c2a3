"""
Planejador de Sprints Jira

Este pacote implementa um sistema automatizado para planejamento de sprints,
integrando-se ao Jira para distribuir issues em sprints de duas semanas de acordo
com a capacity de cada funcionário, as dependências entre issues e as due dates.
"""

__version__ = "1.0.0"
