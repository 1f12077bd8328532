"""Repository Migration Tool

Orchestrates repository migrations into a destination GitHub organization using
the GitHub Enterprise Importer, with GitHub Enterprise Server and Azure DevOps
as supported source systems.
"""

__version__ = '0.1.0'
__author__ = 'Repository Migration Team'
__email__ = 'team@example.com'

from .cli import main

__all__ = ['main']
