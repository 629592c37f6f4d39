"""SQLAlchemy-backed project lookups."""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.application.interfaces import IProjectRegistry, ProjectRef
from core.infrastructure.database.models import ProjectModel


class SQLAlchemyProjectRegistry(IProjectRegistry):
    """Resolves projects from the ``projects`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_project(self, project_id: str) -> Optional[ProjectRef]:
        result = await self.session.execute(
            select(ProjectModel).where(ProjectModel.id == project_id)
        )
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return ProjectRef(id=model.id, name=model.name, path=model.path)
