import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from planboard.models import Activity, ActivityAction, ActivityEntity, Task
from planboard.services.activity_service import ActivityService
from tests.conftest import create_task_row


class TestActivityLog:
    """Best-effort activity recording."""

    @pytest.mark.asyncio
    async def test_record_and_list(self, test_db: AsyncSession, project, member):
        task = await create_task_row(test_db, project, "T")
        service = ActivityService(test_db)

        await service.record(
            ActivityAction.CREATED, ActivityEntity.TASK, task.id, "first", member.id, project.id, task.id
        )
        await service.record(
            ActivityAction.UPDATED, ActivityEntity.TASK, task.id, "second", member.id, project.id, task.id
        )
        await test_db.commit()

        entries = await service.list_task_activities(task.id)
        assert [entry.description for entry in entries] == ["second", "first"]
        assert entries[0].action == "updated"

        project_entries = await service.list_project_activities(project.id, limit=1)
        assert len(project_entries) == 1

    @pytest.mark.asyncio
    async def test_failed_record_does_not_break_mutation(
        self, test_db: AsyncSession, project, member
    ):
        task = Task(title="Survivor", project_id=project.id, order=0)
        test_db.add(task)
        await test_db.flush()

        # description is NOT NULL; the insert fails inside the savepoint
        await ActivityService(test_db).record(
            ActivityAction.CREATED, ActivityEntity.TASK, task.id, None, member.id, project.id, task.id
        )
        await test_db.commit()

        stored = await test_db.scalar(select(Task).where(Task.title == "Survivor"))
        assert stored is not None
        assert await test_db.scalar(select(func.count(Activity.id))) == 0
