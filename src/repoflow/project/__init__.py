"""Project lookup port."""

from repoflow.project.ports import InMemoryProjectRepository, Project, ProjectRepositoryPort

__all__ = ["InMemoryProjectRepository", "Project", "ProjectRepositoryPort"]
