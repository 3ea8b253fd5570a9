"""Project definitions and the build collaborator that renders them."""

from shipyard.projects.project import Project
from shipyard.projects.schema import ComponentSchema, ProjectSchema, SourceSchema

__all__ = ["ComponentSchema", "Project", "ProjectSchema", "SourceSchema"]
